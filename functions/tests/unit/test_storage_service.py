"""Unit tests for Cloud Storage service."""

import re

import pytest
from unittest.mock import patch

from config.errors import StorageError
from services.storage_service import StorageService


@pytest.fixture
def storage_service(mock_bucket):
    return StorageService(bucket=mock_bucket)


def test_object_path_is_unique_and_scoped():
    first = StorageService.object_path("user-1", "proj-1", "Ground Floor.PDF")
    second = StorageService.object_path("user-1", "proj-1", "Ground Floor.PDF")

    assert re.fullmatch(r"users/user-1/projects/proj-1/\d+-[0-9a-f]{8}\.pdf", first)
    assert first != second


def test_bucket_created_lazily(mock_settings):
    mock_settings.storage_bucket = "costscan-test.appspot.com"
    with patch("services.storage_service.storage.bucket") as bucket:
        service = StorageService()
        assert service.bucket is service.bucket
    bucket.assert_called_once_with("costscan-test.appspot.com")


class TestStorageService:
    """Tests for upload, download and delete."""

    @pytest.mark.asyncio
    async def test_upload(self, storage_service, mock_bucket):
        path = await storage_service.upload("user-1", "proj-1", "plan.pdf", b"%PDF", "application/pdf")

        assert path.startswith("users/user-1/projects/proj-1/")
        mock_bucket.blob.assert_called_once_with(path)
        mock_bucket.blob.return_value.upload_from_string.assert_called_once_with(
            b"%PDF", content_type="application/pdf"
        )

    @pytest.mark.asyncio
    async def test_upload_failure(self, storage_service, mock_bucket):
        mock_bucket.blob.return_value.upload_from_string.side_effect = Exception("403 Forbidden")

        with pytest.raises(StorageError) as exc_info:
            await storage_service.upload("user-1", "proj-1", "plan.pdf", b"%PDF", "application/pdf")
        assert "403" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_download(self, storage_service):
        data = await storage_service.download("user-1", "users/user-1/projects/proj-1/1-a.pdf")
        assert data == b"file-bytes"

    @pytest.mark.asyncio
    async def test_download_other_users_object_refused(self, storage_service, mock_bucket):
        with pytest.raises(StorageError):
            await storage_service.download("user-1", "users/user-2/projects/proj-1/1-a.pdf")
        mock_bucket.blob.assert_not_called()

    @pytest.mark.asyncio
    async def test_download_missing_object(self, storage_service, mock_bucket):
        mock_bucket.blob.return_value.download_as_bytes.side_effect = Exception("404 No such object")

        with pytest.raises(StorageError) as exc_info:
            await storage_service.download("user-1", "users/user-1/projects/proj-1/gone.pdf")
        assert exc_info.value.details["path"].endswith("gone.pdf")

    @pytest.mark.asyncio
    async def test_delete(self, storage_service, mock_bucket):
        await storage_service.delete("user-1", "users/user-1/projects/proj-1/1-a.pdf")
        mock_bucket.blob.return_value.delete.assert_called_once()
