"""Shared test fixtures and configuration."""

from __future__ import annotations

from typing import List

import pytest
from langchain_core.tools import tool

from client.local_store import FileStorage, LocalStore


@pytest.fixture(autouse=True)
def no_tool_servers(tmp_path, monkeypatch):
    """Point the tool server config at a file that does not exist."""
    monkeypatch.setenv("MCP_CONFIG_PATH", str(tmp_path / "missing-mcp-config.json"))


@pytest.fixture
def calculator():
    """An ``add`` tool plus the list of calls it received."""
    calls: List[tuple] = []

    @tool
    def add(a: int, b: int) -> int:
        """Add two integers."""
        calls.append((a, b))
        return a + b

    return add, calls


@pytest.fixture
def local_store(tmp_path) -> LocalStore:
    return LocalStore(FileStorage(tmp_path / "storage"))


@pytest.fixture
def tool_call_history():
    """History ending with an assistant message that asks to run ``add``."""
    return [
        {"type": "human", "data": {"id": "h-1", "content": "What is 1 + 2?"}},
        {
            "type": "ai",
            "data": {
                "id": "ai-1",
                "content": "",
                "tool_calls": [{"id": "call-1", "name": "add", "args": {"a": 1, "b": 2}, "type": "tool_call"}],
            },
        },
    ]
