"""File service — presigned MinIO URLs for avatars and task attachments.

Browsers upload straight to MinIO with a presigned PUT; the API only hands
out URLs and never streams file bodies.
"""

import logging
import re
import uuid
from datetime import timedelta

from fastapi.requests import HTTPConnection
from minio import Minio
from minio.error import S3Error

from taskhub.core.config import settings
from taskhub.core.exceptions import StorageError, ValidationError

logger = logging.getLogger("taskhub.files")

ALLOWED_PREFIXES = ("image/",)
ALLOWED_TYPES = ("application/pdf",)


def is_allowed_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return content_type.startswith(ALLOWED_PREFIXES) or content_type in ALLOWED_TYPES


def safe_file_name(file_name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", file_name).strip("-.")
    return cleaned or "file"


class FileService:
    """Issues presigned upload/download URLs against one bucket."""

    def __init__(self):
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region="us-east-1",
        )
        self.bucket = settings.MINIO_BUCKET

    def ensure_bucket(self) -> None:
        """Create the default bucket if it doesn't exist."""
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)

    def object_url(self, object_key: str) -> str:
        scheme = "https" if settings.MINIO_SECURE else "http"
        return f"{scheme}://{settings.MINIO_ENDPOINT}/{self.bucket}/{object_key}"

    def create_upload_url(self, user_id: int, folder: str, file_name: str, content_type: str) -> dict:
        """Presigned PUT for a new object under ``folder/user_id/``.

        Raises:
            ValidationError: Unless the file is an image or a PDF.
        """
        if not is_allowed_content_type(content_type):
            raise ValidationError("Invalid file type. Only images and PDFs are allowed.")
        object_key = f"{folder}/{user_id}/{uuid.uuid4().hex}-{safe_file_name(file_name)}"
        try:
            upload_url = self.client.presigned_put_object(
                self.bucket,
                object_key,
                expires=timedelta(minutes=settings.UPLOAD_URL_EXPIRY_MINUTES),
            )
        except S3Error as e:
            raise StorageError(f"Failed to generate upload URL: {e}")
        logger.info("Issued upload URL for %s", object_key)
        return {
            "upload_url": upload_url,
            "file_url": self.object_url(object_key),
            "object_key": object_key,
        }

    def get_presigned_url(self, object_key: str, expires_minutes: int = 15) -> str:
        """Generate a presigned download URL for a MinIO object."""
        try:
            return self.client.presigned_get_object(
                self.bucket, object_key, expires=timedelta(minutes=expires_minutes)
            )
        except S3Error as e:
            raise StorageError(f"Failed to generate presigned URL: {e}")


def get_file_service(conn: HTTPConnection) -> FileService:
    """FastAPI dependency: the file service built at startup."""
    return conn.app.state.files
