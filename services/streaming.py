"""Streaming service: drive one agent turn and convert graph updates into wire deltas."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langgraph.types import Command

from dtos.chat_request import AgentOptions
from schemas.messages import (
    AIMessageData,
    AIMessageResponse,
    MessageResponse,
    ToolCall,
    ToolMessageData,
    ToolMessageResponse,
)
from schemas.uploads import Attachment
from services.agent import create_agent
from services.content import build_human_content

logger = logging.getLogger(__name__)

# Wire decision -> action understood by the approval gate; an empty update is a denial
DECISION_ACTIONS = {"allow": "continue", "deny": "update"}
TOOL_CALL_CONTENT_KEYS = ("functionCall", "function_call")
TOOL_CALL_CONTENT_TYPES = ("tool_use", "function_call")


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    AWAITING_DECISION = "awaiting_decision"


@dataclass
class TurnOutcome:
    """How a turn ended: completed, or suspended at the approval gate."""
    status: TurnStatus
    thread_id: str
    interrupt_id: Optional[str] = None
    pending: Optional[Dict[str, Any]] = None

    @property
    def awaiting_decision(self) -> bool:
        return self.status == TurnStatus.AWAITING_DECISION

    def to_event(self) -> Dict[str, Any]:
        return {"threadId": self.thread_id, "interruptId": self.interrupt_id, **(self.pending or {})}


class AgentTurn:
    """
    Lazy, single-use iterator over the deltas of one turn.

    ``outcome`` is only available once iteration has finished.
    """

    def __init__(self, thread_id: str, updates: AsyncIterator[Any]):
        self.thread_id = thread_id
        self._updates = updates
        self._started = False
        self._interrupts: List[Any] = []
        self._outcome: Optional[TurnOutcome] = None

    def __aiter__(self):
        if self._started:
            raise RuntimeError("A turn can only be streamed once")
        self._started = True
        return self._run()

    @property
    def outcome(self) -> Optional[TurnOutcome]:
        return self._outcome

    async def _run(self) -> AsyncIterator[MessageResponse]:
        async for chunk in self._updates:
            if not chunk or not isinstance(chunk, dict):
                continue
            for delta in self._process_chunk(chunk):
                yield delta
        self._outcome = self._build_outcome()

    def _process_chunk(self, chunk: Dict[str, Any]) -> List[MessageResponse]:
        deltas: List[MessageResponse] = []
        for node, update in chunk.items():
            if node == "__interrupt__":
                self._interrupts.extend(update or ())
                continue
            if not isinstance(update, dict) or "messages" not in update:
                continue

            messages = update["messages"]
            if not isinstance(messages, (list, tuple)):
                messages = [messages]
            for message in messages:
                delta = process_message(message)
                if delta is not None:
                    deltas.append(delta)
        return deltas

    def _build_outcome(self) -> TurnOutcome:
        if not self._interrupts:
            return TurnOutcome(status=TurnStatus.COMPLETED, thread_id=self.thread_id)

        first = self._interrupts[0]
        value = getattr(first, "value", first)
        logger.info(f"Turn for thread {self.thread_id} is awaiting a tool approval decision")
        return TurnOutcome(
            status=TurnStatus.AWAITING_DECISION,
            thread_id=self.thread_id,
            interrupt_id=getattr(first, "id", None),
            pending=value if isinstance(value, dict) else {"value": value},
        )


def _message_id(message: BaseMessage) -> str:
    return message.id or str(uuid4())


def has_tool_call(message: AIMessage) -> bool:
    """True if the message requests tools, either via ``tool_calls`` or provider content blocks."""
    if message.tool_calls:
        return True
    if isinstance(message.content, list):
        for item in message.content:
            if not isinstance(item, dict):
                continue
            if any(key in item for key in TOOL_CALL_CONTENT_KEYS) or item.get("type") in TOOL_CALL_CONTENT_TYPES:
                return True
    return False


def extract_text(content: Any) -> str:
    """Concatenate the text of plain-string content or a list of text blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return "".join(parts)
    return "" if content is None else str(content)


def process_ai_message(message: AIMessage) -> Optional[AIMessageResponse]:
    """
    Convert an assistant message into a delta.

    Tool-calling messages keep their full metadata; text messages carry only
    their text and are dropped when it is blank.
    """
    if has_tool_call(message):
        return AIMessageResponse(
            data=AIMessageData(
                id=_message_id(message),
                content=message.content if isinstance(message.content, str) else "",
                tool_calls=[ToolCall(**call) for call in message.tool_calls] or None,
                additional_kwargs=message.additional_kwargs or None,
                response_metadata=message.response_metadata or None,
            )
        )

    text = extract_text(message.content)
    if not text.strip():
        return None
    return AIMessageResponse(data=AIMessageData(id=_message_id(message), content=text))


def process_tool_message(message: ToolMessage) -> ToolMessageResponse:
    return ToolMessageResponse(
        data=ToolMessageData(
            id=message.tool_call_id,
            content=message.content,
            name=message.name,
        )
    )


def process_message(message: Any) -> Optional[MessageResponse]:
    """Delta for an assistant or tool message; other messages are not echoed back."""
    if isinstance(message, AIMessage):
        return process_ai_message(message)
    if isinstance(message, ToolMessage):
        return process_tool_message(message)
    return None


def build_resume_payload(decision: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Map an ``allow``/``deny`` decision (or an explicit ``{action, data}``) to the gate's resume value."""
    if isinstance(decision, str):
        if decision not in DECISION_ACTIONS:
            raise ValueError(f"Unknown tool decision: {decision!r}")
        return {"action": DECISION_ACTIONS[decision], "data": {}}
    if not isinstance(decision, dict) or "action" not in decision:
        raise ValueError(f"Invalid tool decision: {decision!r}")
    return {"action": decision["action"], "data": decision.get("data") or {}}


def graph_config(thread_id: str) -> Dict[str, Any]:
    return {"configurable": {"thread_id": thread_id}}


async def start_turn(
    thread_id: str,
    user_text: str,
    history: Sequence[Any] = (),
    options: Optional[AgentOptions] = None,
    attachments: Optional[Sequence[Attachment]] = None,
    llm: Optional[BaseChatModel] = None,
) -> AgentTurn:
    """Begin a turn with a new user message appended to the hydrated history."""
    graph = await create_agent(options, thread_id, history, llm=llm)
    inputs = {"messages": [HumanMessage(content=build_human_content(user_text, attachments))]}
    return AgentTurn(thread_id, graph.astream(inputs, graph_config(thread_id), stream_mode="updates"))


async def resume_turn(
    thread_id: str,
    decision: Union[str, Dict[str, Any]],
    history: Sequence[Any] = (),
    options: Optional[AgentOptions] = None,
    llm: Optional[BaseChatModel] = None,
) -> AgentTurn:
    """
    Continue a turn that stopped at the approval gate.

    The previous request's checkpoint is gone, so the graph is rebuilt from
    the history and positioned after ``agent`` again; routing from there puts
    the pending tool calls back in front of the gate, which then consumes the
    decision.
    """
    payload = build_resume_payload(decision)
    # The pending calls must reach the gate again so the decision is consumed
    options = (options or AgentOptions()).model_copy(update={"approve_all_tools": False})
    graph = await create_agent(options, thread_id, history, llm=llm)
    config = graph_config(thread_id)
    await graph.aupdate_state(config, {"messages": []}, as_node="agent")
    return AgentTurn(thread_id, graph.astream(Command(resume=payload), config, stream_mode="updates"))


async def stream_response(
    thread_id: str,
    user_text: str,
    history: Sequence[Any] = (),
    options: Optional[AgentOptions] = None,
    allow_tool: Optional[str] = None,
    attachments: Optional[Sequence[Attachment]] = None,
    llm: Optional[BaseChatModel] = None,
) -> AgentTurn:
    """Start a new turn, or resume one when a tool decision is supplied."""
    if allow_tool:
        return await resume_turn(thread_id, allow_tool, history, options, llm=llm)
    return await start_turn(thread_id, user_text, history, options, attachments, llm=llm)
