"""Server-sent event helpers for streaming agent turns."""
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from schemas.messages import dump_message
from services.streaming import AgentTurn

logger = logging.getLogger(__name__)


def format_sse(data: Any, event: Optional[str] = None) -> str:
    """Encode one SSE frame."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data)}")
    return "\n".join(lines) + "\n\n"


def error_message(error: Any) -> str:
    """Best-effort human-readable message for anything that was raised."""
    if isinstance(error, BaseException):
        message = str(error).strip()
        return message or error.__class__.__name__
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return "Unknown error"


async def create_sse_stream(start_turn: Callable[[], Awaitable[AgentTurn]]) -> AsyncIterator[str]:
    """
    Run a turn and stream it as SSE.

    Emits one ``data:`` frame per delta, an ``interrupt`` event when the turn
    stopped at the approval gate, then ``done``; any failure ends the stream
    with a single ``error`` event.
    """
    try:
        turn = await start_turn()
        async for delta in turn:
            yield format_sse(dump_message(delta))

        outcome = turn.outcome
        if outcome is not None and outcome.awaiting_decision:
            yield format_sse(outcome.to_event(), event="interrupt")
        yield format_sse({}, event="done")
    except Exception as e:
        logger.error(f"Stream failed: {e}")
        yield format_sse({"message": error_message(e)}, event="error")
