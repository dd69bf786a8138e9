"""Pydantic schemas for client-owned conversation threads."""
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, Field, ConfigDict


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Thread(BaseModel):
    """
    A conversation thread as stored by the client.

    The server never persists threads; it only sees the thread id and the
    history the client sends with each turn.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(default="New thread", max_length=255)
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)
