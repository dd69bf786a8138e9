"""Tests for turning attachments into model content."""

import base64
from unittest.mock import MagicMock

import pytest

import services.content
from schemas.uploads import Attachment
from services.content import AttachmentError, build_human_content, process_attachments_for_ai


def attachment(name, content_type, key=None):
    key = key or f"key-{name}"
    return Attachment(url=f"http://cdn/uploads/{key}", key=key, name=name, type=content_type, size=10)


@pytest.fixture
def storage(monkeypatch):
    files = {}
    fake = MagicMock()
    fake.download_file.side_effect = lambda key: files.get(key)
    monkeypatch.setattr(services.content, "minio_service", fake)
    return files


class TestProcessAttachments:
    def test_image_becomes_data_url(self, storage):
        storage["key-photo.png"] = b"\x89PNG"

        items = process_attachments_for_ai([attachment("photo.png", "image/png")])

        encoded = base64.b64encode(b"\x89PNG").decode("ascii")
        assert items == [{"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}]

    def test_pdf_becomes_data_url(self, storage):
        storage["key-paper.pdf"] = b"%PDF-1.7"

        items = process_attachments_for_ai([attachment("paper.pdf", "application/pdf")])

        assert items[0]["image_url"]["url"].startswith("data:application/pdf;base64,")

    def test_text_is_inlined(self, storage):
        storage["key-notes.md"] = b"# Notes"

        items = process_attachments_for_ai([attachment("notes.md", "text/markdown")])

        assert items == [{"type": "text", "text": "\n\n[Content of notes.md]:\n# Notes"}]

    def test_octet_stream_text_is_inlined(self, storage):
        storage["key-notes.txt"] = b"plain"

        items = process_attachments_for_ai([attachment("notes.txt", "application/octet-stream")])

        assert items[0]["text"].endswith("plain")

    def test_unsupported_type_is_skipped(self, storage):
        assert process_attachments_for_ai([attachment("clip.mp4", "video/mp4")]) == []

    def test_too_many_attachments(self, storage):
        with pytest.raises(AttachmentError, match="At most 3"):
            process_attachments_for_ai([attachment(f"{i}.png", "image/png") for i in range(4)])

    def test_missing_object(self, storage):
        with pytest.raises(AttachmentError, match="Failed to process attachment gone.png"):
            process_attachments_for_ai([attachment("gone.png", "image/png")])


class TestBuildHumanContent:
    def test_text_only(self, storage):
        assert build_human_content("hello") == "hello"
        assert build_human_content("hello", []) == "hello"

    def test_text_with_attachment(self, storage):
        storage["key-notes.md"] = b"body"

        content = build_human_content("Summarize", [attachment("notes.md", "text/markdown")])

        assert content[0] == {"type": "text", "text": "Summarize"}
        assert content[1]["text"].endswith("body")

    def test_attachment_without_text(self, storage):
        storage["key-notes.md"] = b"body"

        content = build_human_content("", [attachment("notes.md", "text/markdown")])

        assert len(content) == 1
