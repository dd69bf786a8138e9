"""Tests for rebuilding agent memory from client history."""

import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from graph import build_agent_graph
from helpers import scripted_model
from services.memory import (
    create_memory_saver,
    get_history,
    history_to_base_messages,
    hydrate_memory_from_history,
    message_to_base_message,
    normalize_content,
)
from schemas.messages import parse_message


class TestConversion:
    def test_normalize_string(self):
        assert normalize_content("hi") == "hi"

    def test_normalize_structured_content(self):
        content = [{"type": "text", "text": "hi"}, {"type": "image_url", "image_url": {"url": "data:..."}}]
        assert json.loads(normalize_content(content)) == content

    def test_tool_message_uses_call_id(self):
        message = message_to_base_message(
            parse_message({"type": "tool", "data": {"id": "call-1", "content": "3", "name": "add"}})
        )
        assert isinstance(message, ToolMessage)
        assert message.tool_call_id == "call-1"
        assert message.name == "add"

    def test_error_message_has_no_agent_form(self):
        with pytest.raises(ValueError):
            message_to_base_message(parse_message({"type": "error", "data": {"id": "e-1", "content": "boom"}}))

    def test_history_skips_error_messages(self):
        messages = history_to_base_messages([
            {"type": "human", "data": {"id": "h-1", "content": "hi"}},
            {"type": "error", "data": {"id": "e-1", "content": "⚠️ boom"}},
            {"type": "ai", "data": {"id": "a-1", "content": "hello"}},
        ])
        assert [type(m) for m in messages] == [HumanMessage, AIMessage]


class TestHydration:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_ids_and_tool_calls(self, tool_call_history):
        saver = create_memory_saver()

        count = await hydrate_memory_from_history(saver, "T1", tool_call_history)

        assert count == 2
        messages = await get_history(saver, "T1")
        assert [m.id for m in messages] == ["h-1", "ai-1"]
        assert isinstance(messages[0], HumanMessage)
        assert messages[0].content == "What is 1 + 2?"
        assert isinstance(messages[1], AIMessage)
        assert messages[1].tool_calls[0]["name"] == "add"
        assert messages[1].tool_calls[0]["args"] == {"a": 1, "b": 2}
        assert messages[1].tool_calls[0]["id"] == "call-1"

    @pytest.mark.asyncio
    async def test_structured_content_is_stored_as_json(self):
        saver = create_memory_saver()
        content = [{"type": "text", "text": "look at this"}]

        await hydrate_memory_from_history(saver, "T1", [{"type": "human", "data": {"id": "h-1", "content": content}}])

        messages = await get_history(saver, "T1")
        assert json.loads(messages[0].content) == content

    @pytest.mark.asyncio
    async def test_empty_history_is_a_no_op(self):
        saver = create_memory_saver()

        assert await hydrate_memory_from_history(saver, "T1", []) == 0
        assert await get_history(saver, "T1") == []

    @pytest.mark.asyncio
    async def test_malformed_history_leaves_memory_empty(self):
        saver = create_memory_saver()

        count = await hydrate_memory_from_history(saver, "T1", [{"type": "robot", "data": {}}])

        assert count == 0
        assert await get_history(saver, "T1") == []

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, tool_call_history):
        saver = create_memory_saver()
        await hydrate_memory_from_history(saver, "T1", tool_call_history)

        assert await get_history(saver, "T2") == []

    @pytest.mark.asyncio
    async def test_hydrated_history_reaches_the_model(self):
        saver = create_memory_saver()
        history = [
            {"type": "human", "data": {"id": "h-1", "content": "My name is Ada."}},
            {"type": "ai", "data": {"id": "a-1", "content": "Nice to meet you, Ada."}},
        ]
        await hydrate_memory_from_history(saver, "T1", history)
        model = scripted_model("You are Ada.")
        graph = build_agent_graph(model, [], saver)

        config = {"configurable": {"thread_id": "T1"}}
        async for _ in graph.astream({"messages": [HumanMessage(content="Who am I?")]}, config, stream_mode="updates"):
            pass

        sent = model.received[0]
        assert [m.content for m in sent[1:]] == ["My name is Ada.", "Nice to meet you, Ada.", "Who am I?"]
