"""Schemas for the static tool server configuration file."""
from typing import Optional, Dict, List, Literal, Any
from pydantic import BaseModel, field_validator


class ToolServerConfig(BaseModel):
    """One entry of the ``servers`` array in the tool configuration file."""
    name: str
    enabled: bool = False
    type: Literal["stdio", "http"]
    command: Optional[str] = None
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    @field_validator("args", mode="before")
    @classmethod
    def keep_string_args(cls, value: Any):
        if not isinstance(value, list):
            return None
        return [arg for arg in value if isinstance(arg, str)]

    @field_validator("env", "headers", mode="before")
    @classmethod
    def ignore_non_objects(cls, value: Any):
        return value if isinstance(value, dict) else None

