from .threads import Thread
from .uploads import Attachment, UploadResponse, UploadErrorResponse, UploadValidationError
from .messages import (
    ToolCall, BasicMessageData, AIMessageData, ToolMessageData,
    HumanMessageResponse, AIMessageResponse, ToolMessageResponse, ErrorMessageResponse,
    MessageResponse, parse_message, dump_message,
)
from .mcp import ToolServerConfig

__all__ = ["Thread",
           "Attachment", "UploadResponse", "UploadErrorResponse", "UploadValidationError",
           "ToolCall", "BasicMessageData", "AIMessageData", "ToolMessageData",
           "HumanMessageResponse", "AIMessageResponse", "ToolMessageResponse", "ErrorMessageResponse",
           "MessageResponse", "parse_message", "dump_message",
           "ToolServerConfig"]
