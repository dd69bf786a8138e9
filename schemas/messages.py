"""Pydantic schemas for the wire message format shared by server and client."""
from typing import Optional, Dict, Any, List, Union, Literal, Annotated
from pydantic import BaseModel, Field, ConfigDict, TypeAdapter

from schemas.uploads import Attachment


class ToolCall(BaseModel):
    """A tool call requested by the model."""
    id: Optional[str] = None
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    type: Optional[str] = "tool_call"


class BasicMessageData(BaseModel):
    """Payload shared by every message variant."""
    id: str
    content: Union[str, List[Any]] = ""
    attachments: Optional[List[Attachment]] = None

    model_config = ConfigDict(extra="allow")


class AIMessageData(BasicMessageData):
    """Payload of an assistant message."""
    tool_calls: Optional[List[ToolCall]] = None
    additional_kwargs: Optional[Dict[str, Any]] = None
    response_metadata: Optional[Dict[str, Any]] = None


class ToolMessageData(BasicMessageData):
    """Payload of a tool result. ``id`` is the originating tool call id."""
    name: Optional[str] = None


class HumanMessageResponse(BaseModel):
    type: Literal["human"] = "human"
    data: BasicMessageData


class AIMessageResponse(BaseModel):
    type: Literal["ai"] = "ai"
    data: AIMessageData


class ToolMessageResponse(BaseModel):
    type: Literal["tool"] = "tool"
    data: ToolMessageData


class ErrorMessageResponse(BaseModel):
    type: Literal["error"] = "error"
    data: BasicMessageData


MessageResponse = Annotated[
    Union[HumanMessageResponse, AIMessageResponse, ToolMessageResponse, ErrorMessageResponse],
    Field(discriminator="type"),
]

message_adapter = TypeAdapter(MessageResponse)
history_adapter = TypeAdapter(List[MessageResponse])


def parse_message(raw: Any) -> MessageResponse:
    """Validate a raw dict (or already-parsed model) into a message variant."""
    if isinstance(raw, BaseModel):
        return raw
    return message_adapter.validate_python(raw)


def dump_message(message: MessageResponse) -> Dict[str, Any]:
    """Serialize a message to its JSON-compatible wire form."""
    return message.model_dump(mode="json", exclude_none=True)
