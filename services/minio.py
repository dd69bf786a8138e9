"""MinIO service for attachment storage."""
import os
from typing import BinaryIO, Dict, Optional
from datetime import timedelta
from urllib.parse import quote
from minio import Minio
from minio.error import S3Error
import logging

logger = logging.getLogger(__name__)

MULTIPART_THRESHOLD = 5 * 1024 * 1024  # 5MB
MULTIPART_PART_SIZE = 5 * 1024 * 1024


class MinIOService:
    """Service class for MinIO operations."""

    def __init__(self):
        """Initialize MinIO client. The bucket is created lazily on first upload."""
        self.endpoint = os.getenv("MINIO_ENDPOINT", "localhost:9000")
        self.secure = os.getenv("MINIO_SECURE", "false").lower() == "true"
        self.client = Minio(
            endpoint=self.endpoint,
            access_key=os.getenv("MINIO_ACCESS_KEY", "minioadmin"),
            secret_key=os.getenv("MINIO_SECRET_KEY", "minioadmin"),
            secure=self.secure
        )

        self.default_bucket = os.getenv("MINIO_BUCKET", "uploads")
        self._ready_buckets = set()

    def _ensure_bucket_exists(self, bucket_name: str) -> None:
        """Ensure the bucket exists, create if it doesn't."""
        if bucket_name in self._ready_buckets:
            return
        try:
            if not self.client.bucket_exists(bucket_name):
                self.client.make_bucket(bucket_name)
                logger.info(f"Created bucket: {bucket_name}")
            self._ready_buckets.add(bucket_name)
        except S3Error as e:
            logger.error(f"Error creating bucket {bucket_name}: {e}")
            raise

    def upload_file(
        self,
        file_data: BinaryIO,
        object_name: str,
        content_type: str,
        file_size: int,
        bucket_name: Optional[str] = None,
        original_filename: Optional[str] = None
    ) -> bool:
        """
        Upload a file to MinIO.

        Args:
            file_data: File binary data
            object_name: Name to store the object as
            content_type: MIME type of the file
            file_size: Size of the file in bytes
            bucket_name: Optional bucket name (defaults to self.default_bucket)
            original_filename: Stored as Content-Disposition so downloads keep the name

        Returns:
            bool: True if successful, False otherwise
        """
        bucket_name = bucket_name or self.default_bucket
        metadata: Dict[str, str] = {}
        if original_filename:
            metadata["Content-Disposition"] = f'attachment; filename="{quote(original_filename)}"'

        try:
            # Ensure bucket exists before uploading
            self._ensure_bucket_exists(bucket_name)

            self.client.put_object(
                bucket_name=bucket_name,
                object_name=object_name,
                data=file_data,
                length=file_size,
                content_type=content_type,
                metadata=metadata or None,
                # Large files go up as multipart in fixed-size parts
                part_size=MULTIPART_PART_SIZE if file_size > MULTIPART_THRESHOLD else 0
            )
            logger.info(f"Successfully uploaded {object_name} to {bucket_name}")
            return True
        except S3Error as e:
            logger.error(f"Error uploading file {object_name}: {e}")
            return False

    def download_file(self, object_name: str, bucket_name: Optional[str] = None) -> Optional[bytes]:
        """
        Download a file from MinIO.

        Args:
            object_name: Name of the object to download
            bucket_name: Optional bucket name

        Returns:
            bytes: File content if successful, None otherwise
        """
        bucket_name = bucket_name or self.default_bucket

        try:
            response = self.client.get_object(bucket_name, object_name)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as e:
            logger.error(f"Error downloading file {object_name}: {e}")
            return None

    def get_public_url(self, object_name: str, bucket_name: Optional[str] = None) -> str:
        """Build the public URL of an object (the uploads bucket allows anonymous download)."""
        bucket_name = bucket_name or self.default_bucket
        endpoint = os.getenv("MINIO_EXTERNAL_ENDPOINT", self.endpoint)
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{endpoint}/{bucket_name}/{object_name}"

    def get_presigned_url(
        self,
        object_name: str,
        bucket_name: Optional[str] = None,
        expires: timedelta = timedelta(hours=1)
    ) -> Optional[str]:
        """
        Generate a pre-signed URL for downloading a file.

        Args:
            object_name: Name of the object
            bucket_name: Optional bucket name
            expires: URL expiration time

        Returns:
            str: Pre-signed URL if successful, None otherwise
        """
        bucket_name = bucket_name or self.default_bucket

        try:
            url = self.client.presigned_get_object(
                bucket_name=bucket_name,
                object_name=object_name,
                expires=expires
            )

            # Replace internal MinIO endpoint with external endpoint for browser access
            external_endpoint = os.getenv("MINIO_EXTERNAL_ENDPOINT")
            if external_endpoint and self.endpoint in url:
                url = url.replace(self.endpoint, external_endpoint)

            return url
        except S3Error as e:
            logger.error(f"Error generating pre-signed URL for {object_name}: {e}")
            return None

    def delete_file(self, object_name: str, bucket_name: Optional[str] = None) -> bool:
        """Delete a file from MinIO."""
        bucket_name = bucket_name or self.default_bucket

        try:
            self.client.remove_object(bucket_name, object_name)
            logger.info(f"Successfully deleted {object_name} from {bucket_name}")
            return True
        except S3Error as e:
            logger.error(f"Error deleting file {object_name}: {e}")
            return False

    def file_exists(self, object_name: str, bucket_name: Optional[str] = None) -> bool:
        """Check if a file exists in MinIO."""
        bucket_name = bucket_name or self.default_bucket

        try:
            self.client.stat_object(bucket_name, object_name)
            return True
        except S3Error:
            return False


# Global instance
minio_service = MinIOService()
