"""Chat client: stream turns from the service and reconcile them into local state."""
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from uuid import uuid4

import httpx
from pydantic import ValidationError

from client.local_store import LocalStore
from schemas.messages import AIMessageResponse, dump_message, parse_message
from schemas.uploads import Attachment, UploadResponse

logger = logging.getLogger(__name__)

ERROR_PREFIX = "⚠️ "


class ChatBusyError(RuntimeError):
    """Raised when sending while a turn is streaming or waiting for a tool decision."""


class ChatServiceError(RuntimeError):
    """Raised for upload failures reported by the service."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


@dataclass
class MessageOptions:
    model: Optional[str] = None
    tools: List[str] = field(default_factory=list)
    allow_tool: Optional[str] = None
    approve_all_tools: bool = False


@dataclass
class StreamEvent:
    """One parsed SSE frame; ``event`` is ``message`` for plain data frames."""
    event: str
    data: Any


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Group SSE lines into events and decode their JSON payloads."""
    event_name = "message"
    data_lines: List[str] = []

    async for line in lines:
        if line == "":
            if data_lines:
                raw = "\n".join(data_lines)
                try:
                    yield StreamEvent(event=event_name, data=json.loads(raw))
                except json.JSONDecodeError:
                    logger.error(f"Skipping undecodable {event_name} event: {raw[:100]}")
            event_name, data_lines = "message", []
        elif line.startswith("event:"):
            event_name = line[6:].strip()
        elif line.startswith("data:"):
            data_lines.append(line[5:].lstrip())

    if data_lines:
        try:
            yield StreamEvent(event=event_name, data=json.loads("\n".join(data_lines)))
        except json.JSONDecodeError:
            logger.error(f"Skipping undecodable trailing {event_name} event")


class ChatService:
    """HTTP client for the streaming and upload endpoints."""

    def __init__(self, base_url: str = "http://localhost:8000", http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client or httpx.AsyncClient(base_url=base_url, timeout=None)

    async def stream_messages(
        self,
        thread_id: str,
        message: str,
        history: Sequence[Dict[str, Any]],
        opts: Optional[MessageOptions] = None,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Open a turn and yield its SSE events. History travels with every request."""
        opts = opts or MessageOptions()
        payload: Dict[str, Any] = {
            "threadId": thread_id,
            "content": message,
            "history": list(history),
            "approveAllTools": opts.approve_all_tools,
        }
        if opts.model:
            payload["model"] = opts.model
        if opts.tools:
            payload["tools"] = opts.tools
        if opts.allow_tool:
            payload["allowTool"] = opts.allow_tool
        if attachments:
            payload["attachments"] = [a.model_dump() for a in attachments]

        async with self.http_client.stream("POST", "/stream", json=payload) as response:
            response.raise_for_status()
            async for event in parse_sse(response.aiter_lines()):
                yield event

    async def upload(self, path: Path, content_type: str) -> Attachment:
        """Upload a file and return its attachment reference."""
        path = Path(path)
        response = await self.http_client.post(
            "/upload",
            files={"file": (path.name, path.read_bytes(), content_type)},
        )
        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {}
            message = body.get("error") or f"Upload failed with status {response.status_code}"
            raise ChatServiceError(message, body.get("field"))
        return Attachment(**UploadResponse(**response.json()).model_dump(exclude={"success"}))

    async def aclose(self) -> None:
        await self.http_client.aclose()


def find_pending_approval(thread_id: str, messages: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Rebuild the approval request of a stored thread.

    A thread is waiting for a decision when its last assistant message asks
    for tool calls that have no tool result yet; error messages are skipped.
    """
    answered = set()
    for message in reversed(messages):
        kind = message.get("type")
        data = message.get("data") or {}
        if kind == "tool":
            answered.add(data.get("id"))
        elif kind == "ai":
            unanswered = [
                call for call in data.get("tool_calls") or []
                if isinstance(call, dict) and call.get("id") not in answered
            ]
            if not unanswered:
                return None
            return {"threadId": thread_id, "interruptId": None, "type": "tool_approval", "tool_calls": unanswered}
        elif kind != "error":
            return None
    return None


class ChatController:
    """
    Drives turns for one thread and keeps the visible message list in sync.

    Text deltas with the tracked in-flight id extend that message; any other
    id starts a new one. Tool-call and tool-result deltas replace the entry
    with the same id. The list is persisted when a stream ends, successfully
    or not.
    """

    def __init__(
        self,
        service: ChatService,
        store: LocalStore,
        thread_id: str,
        options: Optional[MessageOptions] = None,
    ):
        self.service = service
        self.store = store
        self.thread_id = thread_id
        self.options = options or MessageOptions()
        self.messages: List[Dict[str, Any]] = store.get_messages(thread_id)
        self.current_message_id: Optional[str] = None
        self.pending_approval: Optional[Dict[str, Any]] = find_pending_approval(thread_id, self.messages)
        self.is_streaming = False

    @property
    def can_send(self) -> bool:
        return not self.is_streaming and self.pending_approval is None

    async def send_message(self, text: str, attachments: Optional[Sequence[Attachment]] = None) -> None:
        """Optimistically add the user's message and stream the reply."""
        if not self.can_send:
            raise ChatBusyError("Wait for the current response or answer the pending tool request")

        history = list(self.messages)
        human: Dict[str, Any] = {"type": "human", "data": {"id": str(uuid4()), "content": text}}
        if attachments:
            human["data"]["attachments"] = [a.model_dump() for a in attachments]
        self.messages.append(human)

        await self._run_stream(text, history, self.options, attachments)

    async def respond_to_tool(self, decision: str) -> None:
        """Answer a pending tool approval with ``allow`` or ``deny`` and continue the turn."""
        if decision not in ("allow", "deny"):
            raise ValueError(f"decision must be 'allow' or 'deny', got {decision!r}")
        if self.pending_approval is None:
            raise ChatBusyError("No tool call is waiting for approval")
        if self.is_streaming:
            raise ChatBusyError("A response is already streaming")

        self.pending_approval = None
        await self._run_stream("", list(self.messages), replace(self.options, allow_tool=decision))

    async def _run_stream(
        self,
        text: str,
        history: List[Dict[str, Any]],
        opts: MessageOptions,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> None:
        self.is_streaming = True
        try:
            async for event in self.service.stream_messages(self.thread_id, text, history, opts, attachments):
                if event.event == "message":
                    self.apply_delta(event.data)
                elif event.event == "interrupt":
                    self.pending_approval = event.data
                elif event.event == "error":
                    message = event.data.get("message") if isinstance(event.data, dict) else None
                    self.append_error(message or "Unknown error")
        except httpx.HTTPError as e:
            logger.error(f"Stream for thread {self.thread_id} failed: {e}")
            self.append_error(str(e) or e.__class__.__name__)
        finally:
            self.current_message_id = None
            self.is_streaming = False
            self.store.save_messages(self.thread_id, self.messages)

    def apply_delta(self, raw: Dict[str, Any]) -> None:
        """Reconcile one streamed delta into the message list."""
        try:
            message = parse_message(raw)
        except ValidationError as e:
            logger.error(f"Ignoring malformed delta: {e}")
            return

        data = message.data
        is_text_delta = (
            isinstance(message, AIMessageResponse)
            and not data.tool_calls
            and isinstance(data.content, str)
        )

        if not is_text_delta:
            self._upsert(dump_message(message))
            self.current_message_id = data.id
            return

        index = self._index_of(data.id) if self.current_message_id == data.id else None
        if index is None:
            self.current_message_id = data.id
            self.messages.append(dump_message(message))
            return

        entry = self.messages[index]
        previous = entry["data"].get("content", "")
        entry["data"]["content"] = (previous if isinstance(previous, str) else "") + data.content

    def append_error(self, message: str) -> None:
        self.messages.append({
            "type": "error",
            "data": {"id": str(uuid4()), "content": f"{ERROR_PREFIX}{message}"},
        })

    def _index_of(self, message_id: str) -> Optional[int]:
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].get("data", {}).get("id") == message_id:
                return index
        return None

    def _upsert(self, message: Dict[str, Any]) -> None:
        index = self._index_of(message["data"]["id"])
        if index is None:
            self.messages.append(message)
        else:
            self.messages[index] = message
