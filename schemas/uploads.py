"""Upload schemas for attachment requests and responses."""
from typing import Literal
from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """Reference to a stored attachment, embedded in message content."""
    url: str = Field(..., description="Public URL of the stored object")
    key: str = Field(..., description="Object key in the uploads bucket")
    name: str = Field(..., description="Original filename")
    type: str = Field(..., description="MIME type reported by the uploader")
    size: int = Field(..., ge=0, description="Size in bytes")


class UploadResponse(Attachment):
    """Schema for a successful upload."""
    success: Literal[True] = True


class UploadErrorResponse(BaseModel):
    """Schema for a rejected upload."""
    error: str
    field: str


class UploadValidationError(BaseModel):
    """A single validation failure for an uploaded file."""
    field: str
    message: str
