"""Turn stored attachments into model-ready content items."""
import base64
import logging
from typing import Any, Dict, List, Optional, Sequence

from schemas.uploads import Attachment
from services.minio import minio_service
from services.uploads import MAX_ATTACHMENTS, OCTET_STREAM, OCTET_STREAM_ALLOWED_EXTENSIONS, file_extension

logger = logging.getLogger(__name__)


class AttachmentError(ValueError):
    """Raised when an attachment cannot be turned into message content."""


def download_file(key: str) -> bytes:
    data = minio_service.download_file(key)
    if data is None:
        raise AttachmentError(f"File not found: {key}")
    return data


def get_file_data_url(attachment: Attachment) -> str:
    """Data URL for an image or PDF attachment."""
    encoded = base64.b64encode(download_file(attachment.key)).decode("ascii")
    return f"data:{attachment.type};base64,{encoded}"


def is_text_attachment(attachment: Attachment) -> bool:
    if attachment.type.startswith("text/"):
        return True
    return attachment.type == OCTET_STREAM and file_extension(attachment.name) in OCTET_STREAM_ALLOWED_EXTENSIONS


def attachment_to_content_item(attachment: Attachment) -> Optional[Dict[str, Any]]:
    """Content item for one attachment, or None for types the model cannot take."""
    if attachment.type.startswith("image/") or attachment.type == "application/pdf":
        # PDFs travel as image_url data URLs too
        return {"type": "image_url", "image_url": {"url": get_file_data_url(attachment)}}

    if is_text_attachment(attachment):
        text = download_file(attachment.key).decode("utf-8", errors="replace")
        return {"type": "text", "text": f"\n\n[Content of {attachment.name}]:\n{text}"}

    logger.warning(f"Skipping attachment {attachment.name} with unsupported type {attachment.type}")
    return None


def process_attachments_for_ai(attachments: Sequence[Attachment]) -> List[Dict[str, Any]]:
    """
    Convert attachments into LangChain content items.

    Raises:
        AttachmentError: If there are too many attachments or one cannot be read
    """
    if len(attachments) > MAX_ATTACHMENTS:
        raise AttachmentError(f"At most {MAX_ATTACHMENTS} attachments are allowed per message")

    items: List[Dict[str, Any]] = []
    for attachment in attachments:
        try:
            item = attachment_to_content_item(attachment)
        except Exception as e:
            logger.error(f"Failed to process attachment {attachment.name}: {e}")
            raise AttachmentError(f"Failed to process attachment {attachment.name}") from e
        if item is not None:
            items.append(item)
    return items


def build_human_content(text: str, attachments: Optional[Sequence[Attachment]] = None):
    """Plain text when there are no attachments, otherwise a list of content items."""
    if not attachments:
        return text
    items: List[Dict[str, Any]] = []
    if text:
        items.append({"type": "text", "text": text})
    items.extend(process_attachments_for_ai(attachments))
    return items
