"""Upload service: validate attachments and store them in the object store."""
from typing import Optional, BinaryIO
from uuid import uuid4
import logging

from schemas.uploads import Attachment, UploadValidationError
from services.minio import minio_service

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Allowed MIME types with their canonical extension and size limit
ALLOWED_MIME_TYPES = {
    # Images
    "image/png": {"ext": "png", "max_size": 5 * MB},
    "image/jpeg": {"ext": "jpg", "max_size": 5 * MB},
    "image/jpg": {"ext": "jpg", "max_size": 5 * MB},
    # Documents
    "application/pdf": {"ext": "pdf", "max_size": 10 * MB},
    # Text
    "text/markdown": {"ext": "md", "max_size": 2 * MB},
    "text/plain": {"ext": "txt", "max_size": 2 * MB},
}

# Browsers often send text files with unrecognized extensions as application/octet-stream
OCTET_STREAM = "application/octet-stream"
OCTET_STREAM_ALLOWED_EXTENSIONS = ["md", "markdown", "txt"]
MAX_OCTET_STREAM_SIZE = 2 * MB

# Maximum number of attachments allowed per message
MAX_ATTACHMENTS = 3


class UploadError(Exception):
    """Raised when a validated upload could not be stored."""


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or an empty string."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def validate_file(filename: str, content_type: str, file_size: int) -> Optional[UploadValidationError]:
    """
    Validate an upload's MIME type and size.

    Size limits are inclusive: a file of exactly the maximum size passes.

    Returns:
        UploadValidationError describing the first failure, or None if the file is acceptable
    """
    if content_type == OCTET_STREAM:
        extension = file_extension(filename)
        if extension not in OCTET_STREAM_ALLOWED_EXTENSIONS:
            return UploadValidationError(
                field="type",
                message=(
                    f"Files with type {OCTET_STREAM} must have extension: "
                    f"{', '.join(OCTET_STREAM_ALLOWED_EXTENSIONS)}. Got: .{extension}"
                ),
            )
        if file_size > MAX_OCTET_STREAM_SIZE:
            return UploadValidationError(
                field="size",
                message=f"File size exceeds maximum allowed size of {MAX_OCTET_STREAM_SIZE // MB}MB for text files",
            )
        return None

    if content_type not in ALLOWED_MIME_TYPES:
        return UploadValidationError(
            field="type",
            message=f"File type {content_type} is not allowed. Allowed types: {', '.join(ALLOWED_MIME_TYPES.keys())}",
        )

    max_size = ALLOWED_MIME_TYPES[content_type]["max_size"]
    if file_size > max_size:
        return UploadValidationError(
            field="size",
            message=f"File size exceeds maximum allowed size of {max_size // MB}MB",
        )

    return None


def get_file_extension(mime_type: str) -> str:
    """Canonical extension for an allowed MIME type, falling back to the subtype."""
    if mime_type in ALLOWED_MIME_TYPES:
        return ALLOWED_MIME_TYPES[mime_type]["ext"]
    parts = mime_type.split("/")
    return parts[1] if len(parts) > 1 and parts[1] else "bin"


def is_valid_text_content(data: bytes) -> bool:
    """Text uploads must be NUL-free UTF-8."""
    if b"\x00" in data:
        return False
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


class UploadService:
    """Service class for attachment uploads."""

    @staticmethod
    def generate_object_name(filename: str) -> str:
        """Generate a unique object key that keeps the original extension."""
        extension = filename.rsplit(".", 1)[1] if "." in filename else ""
        return f"{uuid4()}.{extension or 'bin'}"

    @staticmethod
    def upload_attachment(
        filename: str,
        file_data: BinaryIO,
        file_size: int,
        content_type: str,
    ) -> Attachment:
        """
        Store an already validated file and describe it as an attachment.

        Raises:
            UploadError: If the object store rejected the upload
        """
        key = UploadService.generate_object_name(filename)

        success = minio_service.upload_file(
            file_data=file_data,
            object_name=key,
            content_type=content_type,
            file_size=file_size,
            original_filename=filename,
        )
        if not success:
            raise UploadError(f"Failed to store {filename}")

        logger.info(f"Stored attachment {filename} as {key} ({file_size} bytes)")
        return Attachment(
            url=minio_service.get_public_url(key),
            key=key,
            name=filename,
            type=content_type,
            size=file_size,
        )
