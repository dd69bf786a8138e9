"""Memory hydration: rebuild an agent checkpoint from client-supplied history."""
import json
import logging
from typing import Any, List, Sequence, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langgraph.checkpoint.base import BaseCheckpointSaver, empty_checkpoint
from langgraph.checkpoint.memory import MemorySaver

from schemas.messages import (
    AIMessageResponse,
    ErrorMessageResponse,
    HumanMessageResponse,
    MessageResponse,
    ToolMessageResponse,
    parse_message,
)

logger = logging.getLogger(__name__)


def create_memory_saver() -> MemorySaver:
    """Create an ephemeral, request-scoped checkpoint store."""
    return MemorySaver()


def thread_config(thread_id: str) -> dict:
    return {"configurable": {"thread_id": thread_id, "checkpoint_ns": ""}}


def normalize_content(content: Union[str, List[Any], Any]) -> str:
    """Structured content (images, text blocks, file references) is kept as its JSON encoding."""
    if isinstance(content, str):
        return content
    return json.dumps(content)


def message_to_base_message(message: MessageResponse) -> BaseMessage:
    """Convert a wire message into the LangChain message for its role."""
    data = message.data
    if isinstance(message, HumanMessageResponse):
        return HumanMessage(content=normalize_content(data.content), id=data.id)
    if isinstance(message, AIMessageResponse):
        return AIMessage(
            content=normalize_content(data.content),
            id=data.id,
            tool_calls=[call.model_dump() for call in data.tool_calls or []],
            additional_kwargs=data.additional_kwargs or {},
            response_metadata=data.response_metadata or {},
        )
    if isinstance(message, ToolMessageResponse):
        return ToolMessage(
            content=normalize_content(data.content),
            tool_call_id=data.id,
            name=data.name,
        )
    if isinstance(message, ErrorMessageResponse):
        raise ValueError("Error messages are client-side only and have no agent representation")
    raise TypeError(f"Unsupported message type: {type(message).__name__}")


def history_to_base_messages(history: Sequence[Any]) -> List[BaseMessage]:
    """Parse and convert a raw history, skipping client-only error messages."""
    parsed = [parse_message(item) for item in history]
    return [
        message_to_base_message(message)
        for message in parsed
        if not isinstance(message, ErrorMessageResponse)
    ]


async def hydrate_memory_from_history(
    saver: BaseCheckpointSaver,
    thread_id: str,
    history: Sequence[Any],
) -> int:
    """
    Seed ``saver`` with a single checkpoint holding ``history`` for ``thread_id``.

    Best effort: a malformed history is logged and the agent starts with an
    empty memory instead of failing the turn.

    Returns:
        int: Number of messages written to the checkpoint
    """
    if not history:
        return 0

    try:
        messages = history_to_base_messages(history)

        checkpoint = empty_checkpoint()
        checkpoint["channel_values"] = {"messages": messages}
        checkpoint["channel_versions"] = {"messages": saver.get_next_version(None, None)}
        checkpoint["versions_seen"] = {}

        await saver.aput(
            thread_config(thread_id),
            checkpoint,
            {"source": "update", "step": -1, "parents": {}},
            checkpoint["channel_versions"],
        )
        logger.info(f"Hydrated {len(messages)} messages for thread {thread_id}")
        return len(messages)
    except Exception as e:
        logger.error(f"Failed to hydrate memory for thread {thread_id}: {e}")
        return 0


async def get_history(saver: BaseCheckpointSaver, thread_id: str) -> List[BaseMessage]:
    """Read back the messages of the latest checkpoint for a thread."""
    try:
        checkpoint = await saver.aget(thread_config(thread_id))
    except Exception as e:
        logger.error(f"Failed to get history for thread {thread_id}: {e}")
        return []

    if not checkpoint:
        return []
    messages = checkpoint.get("channel_values", {}).get("messages")
    return list(messages) if isinstance(messages, list) else []
