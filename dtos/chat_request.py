from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Literal

from schemas.uploads import Attachment


class ChatRequest(BaseModel):
    thread_id: str = Field(alias="threadId")
    message: str = Field(default="", alias="content")
    history: List[Dict[str, Any]] = Field(default_factory=list, description="Full client-side message history")
    model: Optional[str] = Field(default=None, description="Model identifier, optionally 'provider:model'")
    tools: Optional[List[str]] = Field(default=None, description="Names of built-in tools to enable")
    allow_tool: Optional[Literal["allow", "deny"]] = Field(default=None, alias="allowTool")
    approve_all_tools: bool = Field(default=False, alias="approveAllTools")
    attachments: Optional[List[Attachment]] = None

    model_config = ConfigDict(populate_by_name=True)


class AgentOptions(BaseModel):
    """Per-request agent configuration derived from a chat request."""
    model: Optional[str] = None
    tools: List[str] = Field(default_factory=list)
    approve_all_tools: bool = False
    system_prompt: Optional[str] = None

    @classmethod
    def from_request(cls, req: ChatRequest) -> "AgentOptions":
        return cls(
            model=req.model,
            tools=req.tools or [],
            approve_all_tools=req.approve_all_tools,
        )
