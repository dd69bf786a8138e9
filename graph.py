from typing import TypedDict, Annotated, Optional, List, Dict, Any, Literal, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import StateGraph, START, END
from langgraph.graph.message import add_messages
from langgraph.prebuilt import ToolNode
from langgraph.types import Command, interrupt
import logging

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a helpful AI assistant.
You can call external tools when they help answer the user's question. Tool calls may need the
user's approval before they run; if a call is denied, explain what you would have done and continue
without it. Answer concisely and use Markdown for formatting."""

DEFAULT_DENIAL_MESSAGE = "The user denied this tool call. Do not retry it; continue without its result."

ApprovalAction = Literal["continue", "update", "feedback"]


class State(TypedDict):
    messages: Annotated[list[BaseMessage], add_messages]


def pending_tool_calls(messages: Sequence[BaseMessage]) -> List[Dict[str, Any]]:
    """Return the tool calls of the last message if it is an assistant message."""
    if not messages:
        return []
    last = messages[-1]
    if isinstance(last, AIMessage) and last.tool_calls:
        return list(last.tool_calls)
    return []


def _apply_update(message: AIMessage, data: Dict[str, Any]) -> Optional[AIMessage]:
    """Build a replacement for ``message`` with edited tool calls, or None if ``data`` edits nothing."""
    if data.get("tool_calls"):
        tool_calls = [
            {"id": call.get("id"), "name": call["name"], "args": call.get("args", {}), "type": "tool_call"}
            for call in data["tool_calls"]
        ]
    elif "args" in data and len(message.tool_calls) == 1:
        original = message.tool_calls[0]
        tool_calls = [{**original, "args": data["args"]}]
    else:
        return None

    # Same id so add_messages replaces the pending message in place
    return AIMessage(
        content=message.content,
        id=message.id,
        tool_calls=tool_calls,
        additional_kwargs=message.additional_kwargs,
        response_metadata=message.response_metadata,
    )


def _denial_messages(tool_calls: List[Dict[str, Any]], data: Dict[str, Any]) -> List[ToolMessage]:
    text = data.get("message") or DEFAULT_DENIAL_MESSAGE
    return [
        ToolMessage(content=text, tool_call_id=call["id"], name=call.get("name"), status="error")
        for call in tool_calls
    ]


def build_agent_graph(
    llm: BaseChatModel,
    tools: Sequence[BaseTool],
    checkpointer: BaseCheckpointSaver,
    prompt: Optional[str] = None,
    approve_all_tools: bool = False,
):
    """
    Compile a fresh agent graph: agent -> (tool_approval ->) tools -> agent.

    Nothing is cached between calls; every request gets its own graph bound to
    its own checkpointer.
    """
    tools = list(tools)
    system_prompt = prompt or DEFAULT_SYSTEM_PROMPT
    model = llm.bind_tools(tools) if tools else llm

    async def agent(state: State):
        """Call the model with the conversation so far."""
        messages = [SystemMessage(content=system_prompt), *state["messages"]]
        response = await model.ainvoke(messages)
        return {"messages": [response]}

    def route_after_agent(state: State) -> Literal["tool_approval", "tools", "__end__"]:
        if not pending_tool_calls(state["messages"]):
            return END
        return "tools" if approve_all_tools else "tool_approval"

    def tool_approval(state: State) -> Command[Literal["tools", "agent"]]:
        """Suspend until the user decides what to do with the pending tool calls."""
        tool_calls = pending_tool_calls(state["messages"])
        decision = interrupt({
            "type": "tool_approval",
            "question": "Approve the following tool calls?",
            "tool_calls": tool_calls,
        })

        if not isinstance(decision, dict):
            raise ValueError(f"Invalid tool approval decision: {decision!r}")
        action = decision.get("action")
        data = decision.get("data") or {}

        if action == "continue":
            logger.info(f"Approved {len(tool_calls)} tool call(s)")
            return Command(goto="tools")

        if action == "update":
            updated = _apply_update(state["messages"][-1], data)
            if updated is not None:
                logger.info(f"Running {len(updated.tool_calls)} edited tool call(s)")
                return Command(goto="tools", update={"messages": [updated]})
            # An update without a replacement payload is a plain denial
            action = "feedback"

        if action == "feedback":
            logger.info(f"Denied {len(tool_calls)} tool call(s)")
            return Command(goto="agent", update={"messages": _denial_messages(tool_calls, data)})

        raise ValueError(f"Unknown tool approval action: {action!r}")

    s_graph = (
        StateGraph(State)
        .add_node("agent", agent)
        .add_node("tool_approval", tool_approval)
        .add_node("tools", ToolNode(tools, handle_tool_errors=False))
        .add_edge(START, "agent")
        .add_conditional_edges("agent", route_after_agent, ["tool_approval", "tools", END])
        .add_edge("tools", "agent")
    )
    return s_graph.compile(checkpointer=checkpointer)
