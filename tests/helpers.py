"""Shared test helpers (fake chat models and canned messages)."""

from __future__ import annotations

import json
from typing import Any, List

from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, BaseMessage
from pydantic import Field


class ScriptedChatModel(GenericFakeChatModel):
    """Fake chat model that replays scripted replies and records what it was sent."""

    received: List[List[BaseMessage]] = Field(default_factory=list)

    def bind_tools(self, tools: Any, **kwargs: Any) -> "ScriptedChatModel":
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.received.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


class FailingChatModel(ScriptedChatModel):
    """Chat model whose every call fails."""

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        raise RuntimeError("model unavailable")


def scripted_model(*replies: Any) -> ScriptedChatModel:
    return ScriptedChatModel(messages=iter(replies))


def tool_call_message(message_id: str = "ai-1", call_id: str = "call-1", a: int = 1, b: int = 2) -> AIMessage:
    return AIMessage(
        content="",
        id=message_id,
        tool_calls=[{"name": "add", "args": {"a": a, "b": b}, "id": call_id, "type": "tool_call"}],
    )


def parse_sse_text(body: str) -> List[tuple]:
    """Split a raw SSE body into (event, data) pairs; plain data frames get event ``message``."""
    frames = []
    for block in body.strip().split("\n\n"):
        event, data = "message", None
        for line in block.splitlines():
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        frames.append((event, data))
    return frames
