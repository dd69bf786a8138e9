"""Tests for upload validation and storage."""

from io import BytesIO
from unittest.mock import MagicMock

import pydantic
import pytest

import services.uploads
from services.uploads import (
    MB,
    UploadError,
    UploadService,
    UploadValidationError,
    file_extension,
    get_file_extension,
    is_valid_text_content,
    validate_file,
)


@pytest.fixture
def storage(monkeypatch):
    fake = MagicMock()
    fake.upload_file.return_value = True
    fake.get_public_url.side_effect = lambda key: f"http://cdn/uploads/{key}"
    monkeypatch.setattr(services.uploads, "minio_service", fake)
    return fake


class TestValidateFile:
    @pytest.mark.parametrize("content_type,limit", [
        ("image/png", 5 * MB),
        ("image/jpeg", 5 * MB),
        ("application/pdf", 10 * MB),
        ("text/markdown", 2 * MB),
        ("text/plain", 2 * MB),
    ])
    def test_limits_are_inclusive(self, content_type, limit):
        assert validate_file("file", content_type, limit) is None
        error = validate_file("file", content_type, limit + 1)
        assert error.field == "size"

    def test_unknown_type(self):
        error = validate_file("clip.mp4", "video/mp4", 10)
        assert isinstance(error, UploadValidationError)
        assert not isinstance(error, pydantic.ValidationError)
        assert error.field == "type"
        assert "video/mp4" in error.message

    def test_octet_stream_needs_text_extension(self):
        assert validate_file("README.MD", "application/octet-stream", 10) is None
        assert validate_file("notes.markdown", "application/octet-stream", 10) is None
        error = validate_file("archive.zip", "application/octet-stream", 10)
        assert error.field == "type"

    def test_octet_stream_size(self):
        assert validate_file("notes.txt", "application/octet-stream", 2 * MB) is None
        assert validate_file("notes.txt", "application/octet-stream", 2 * MB + 1).field == "size"


class TestHelpers:
    def test_file_extension(self):
        assert file_extension("Report.PDF") == "pdf"
        assert file_extension("archive.tar.gz") == "gz"
        assert file_extension("Makefile") == ""

    def test_get_file_extension(self):
        assert get_file_extension("image/jpeg") == "jpg"
        assert get_file_extension("text/markdown") == "md"
        assert get_file_extension("application/x-custom") == "x-custom"

    def test_text_content(self):
        assert is_valid_text_content("héllo".encode("utf-8"))
        assert not is_valid_text_content(b"abc\x00def")
        assert not is_valid_text_content(b"\xff\xfe\xfd")

    def test_object_name_keeps_extension(self):
        assert UploadService.generate_object_name("photo.png").endswith(".png")
        assert UploadService.generate_object_name("Makefile").endswith(".bin")
        assert UploadService.generate_object_name("a.md") != UploadService.generate_object_name("a.md")


class TestUploadAttachment:
    def test_success(self, storage):
        attachment = UploadService.upload_attachment(
            filename="notes.md",
            file_data=BytesIO(b"# Notes"),
            file_size=7,
            content_type="text/markdown",
        )

        assert attachment.name == "notes.md"
        assert attachment.type == "text/markdown"
        assert attachment.size == 7
        assert attachment.key.endswith(".md")
        assert attachment.url == f"http://cdn/uploads/{attachment.key}"
        kwargs = storage.upload_file.call_args.kwargs
        assert kwargs["object_name"] == attachment.key
        assert kwargs["file_size"] == 7

    def test_storage_failure(self, storage):
        storage.upload_file.return_value = False

        with pytest.raises(UploadError):
            UploadService.upload_attachment(
                filename="notes.md",
                file_data=BytesIO(b"# Notes"),
                file_size=7,
                content_type="text/markdown",
            )
