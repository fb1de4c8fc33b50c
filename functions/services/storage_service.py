"""Cloud Storage service for CostScan.

Stores uploaded documents at users/{userId}/projects/{projectId}/{name}.
Like Firestore, the Admin SDK is synchronous; methods are async for interface
compatibility with the pipeline.
"""

import os
import secrets
import time
from typing import Optional

import structlog
from firebase_admin import storage

from config.errors import StorageError
from config.settings import settings

logger = structlog.get_logger()


class StorageService:
    """Object storage for uploaded project files."""

    def __init__(self, bucket=None, bucket_name: Optional[str] = None):
        """Initialize StorageService.

        Args:
            bucket: Optional bucket object. If not provided, uses the default
                app bucket (or bucket_name / settings.storage_bucket).
            bucket_name: Bucket name override.
        """
        self._bucket = bucket
        self.bucket_name = bucket_name or settings.storage_bucket

    @property
    def bucket(self):
        """Get storage bucket (lazy initialization)."""
        if self._bucket is None:
            self._bucket = storage.bucket(self.bucket_name)
        return self._bucket

    @staticmethod
    def object_path(user_id: str, project_id: str, file_name: str) -> str:
        """Unique object path under the owner's prefix."""
        extension = os.path.splitext(file_name)[1].lower()
        unique = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        return f"users/{user_id}/projects/{project_id}/{unique}{extension}"

    @staticmethod
    def _check_owner(user_id: str, path: str) -> None:
        if not path.startswith(f"users/{user_id}/"):
            raise StorageError(message="Object does not belong to user", path=path)

    async def upload(self, user_id: str, project_id: str, file_name: str, data: bytes, content_type: str) -> str:
        """Upload file bytes.

        Returns:
            Stored object path.

        Raises:
            StorageError: If the upload fails.
        """
        path = self.object_path(user_id, project_id, file_name)
        try:
            blob = self.bucket.blob(path)
            blob.upload_from_string(data, content_type=content_type)
            logger.info("file_uploaded", project_id=project_id, path=path, size=len(data))
            return path
        except Exception as e:
            logger.error("file_upload_failed", project_id=project_id, file_name=file_name, error=str(e))
            raise StorageError(message=f"Failed to upload {file_name}: {str(e)}", path=path)

    async def download(self, user_id: str, path: str) -> bytes:
        """Download an object's bytes.

        Raises:
            StorageError: If the object is missing or the download fails.
        """
        self._check_owner(user_id, path)
        try:
            return self.bucket.blob(path).download_as_bytes()
        except Exception as e:
            logger.error("file_download_failed", path=path, error=str(e))
            raise StorageError(message=f"Failed to download file: {str(e)}", path=path)

    async def delete(self, user_id: str, path: str) -> None:
        """Delete an object.

        Raises:
            StorageError: If the delete fails.
        """
        self._check_owner(user_id, path)
        try:
            self.bucket.blob(path).delete()
            logger.info("file_deleted", path=path)
        except Exception as e:
            logger.error("file_delete_failed", path=path, error=str(e))
            raise StorageError(message=f"Failed to delete file: {str(e)}", path=path)
