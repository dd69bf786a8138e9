"""Tests for the object store service."""

from io import BytesIO
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error

from services.minio import MULTIPART_PART_SIZE, MinIOService

MB = 1024 * 1024


def s3_error(code="NoSuchKey"):
    return S3Error(code, "failed", "resource", "request-id", "host-id", MagicMock())


@pytest.fixture
def service(monkeypatch):
    monkeypatch.setenv("MINIO_ENDPOINT", "minio:9000")
    monkeypatch.setenv("MINIO_BUCKET", "uploads")
    monkeypatch.delenv("MINIO_EXTERNAL_ENDPOINT", raising=False)
    minio = MinIOService()
    minio.client = MagicMock()
    minio.client.bucket_exists.return_value = True
    return minio


class TestUpload:
    def test_small_file(self, service):
        assert service.upload_file(BytesIO(b"abc"), "k.md", "text/markdown", 3, original_filename="my notes.md")

        kwargs = service.client.put_object.call_args.kwargs
        assert kwargs["bucket_name"] == "uploads"
        assert kwargs["part_size"] == 0
        assert kwargs["metadata"] == {"Content-Disposition": 'attachment; filename="my%20notes.md"'}

    def test_large_file_uses_parts(self, service):
        service.upload_file(BytesIO(b""), "k.pdf", "application/pdf", 6 * MB)

        kwargs = service.client.put_object.call_args.kwargs
        assert kwargs["part_size"] == MULTIPART_PART_SIZE
        assert kwargs["metadata"] is None

    def test_bucket_is_created_once(self, service):
        service.client.bucket_exists.return_value = False

        service.upload_file(BytesIO(b"a"), "a.txt", "text/plain", 1)
        service.upload_file(BytesIO(b"b"), "b.txt", "text/plain", 1)

        service.client.make_bucket.assert_called_once_with("uploads")

    def test_failure_returns_false(self, service):
        service.client.put_object.side_effect = s3_error("AccessDenied")

        assert service.upload_file(BytesIO(b"a"), "a.txt", "text/plain", 1) is False


class TestDownload:
    def test_reads_and_releases(self, service):
        response = MagicMock()
        response.read.return_value = b"data"
        service.client.get_object.return_value = response

        assert service.download_file("k.md") == b"data"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_missing_object(self, service):
        service.client.get_object.side_effect = s3_error()

        assert service.download_file("gone.md") is None


class TestUrls:
    def test_public_url(self, service):
        assert service.get_public_url("k.png") == "http://minio:9000/uploads/k.png"

    def test_public_url_uses_external_endpoint(self, service, monkeypatch):
        monkeypatch.setenv("MINIO_EXTERNAL_ENDPOINT", "files.example.com")
        assert service.get_public_url("k.png") == "http://files.example.com/uploads/k.png"

    def test_presigned_url_rewrites_endpoint(self, service, monkeypatch):
        monkeypatch.setenv("MINIO_EXTERNAL_ENDPOINT", "files.example.com")
        service.client.presigned_get_object.return_value = "http://minio:9000/uploads/k.png?sig=1"

        assert service.get_presigned_url("k.png") == "http://files.example.com/uploads/k.png?sig=1"


class TestObjects:
    def test_delete(self, service):
        assert service.delete_file("k.png")
        service.client.remove_object.assert_called_once_with("uploads", "k.png")

    def test_exists(self, service):
        assert service.file_exists("k.png")
        service.client.stat_object.side_effect = s3_error()
        assert not service.file_exists("k.png")
