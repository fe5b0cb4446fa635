"""Blob store for uploaded audio files, backed by Supabase storage."""

import asyncio
import logging
from typing import Any, Optional

from src.utils.errors import DownloadError, StorageError

logger = logging.getLogger(__name__)


class BlobStore:
    """Downloads, uploads and signs URLs for audio blobs in one bucket."""

    def __init__(self, supabase_client: Any, bucket: str = "audio_files") -> None:
        """
        Initialize the BlobStore.

        Args:
            supabase_client: Supabase client instance
            bucket: Storage bucket holding uploaded audio
        """
        self.supabase = supabase_client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self.supabase.storage.from_(self.bucket)

    async def download(self, path: str) -> bytes:
        """
        Download a blob.

        Args:
            path: Object path inside the bucket

        Returns:
            The blob bytes

        Raises:
            DownloadError: If the blob is missing, unreadable or empty
        """
        try:
            data = await asyncio.to_thread(self._bucket().download, path)
        except Exception as e:
            raise DownloadError(f"Failed to download file: {e}")

        if not data:
            raise DownloadError(f"Failed to download file: {path} is empty")

        logger.info(f"Downloaded {path} ({len(data)} bytes)")
        return data

    async def upload(self, path: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        """
        Upload a blob.

        Args:
            path: Object path inside the bucket
            data: Bytes to store
            content_type: MIME type stored with the object

        Returns:
            The object path

        Raises:
            StorageError: If upload fails
        """
        try:
            await asyncio.to_thread(
                self._bucket().upload,
                path=path,
                file=data,
                file_options={"content-type": content_type},
            )
        except Exception as e:
            raise StorageError(f"Failed to upload {path}: {e}")

        logger.info(f"Uploaded {path} ({len(data)} bytes)")
        return path

    async def create_signed_url(self, path: str, expires_in: int = 3600) -> str:
        """
        Create a time-limited URL for playback.

        Args:
            path: Object path inside the bucket
            expires_in: Validity in seconds

        Returns:
            Signed URL

        Raises:
            StorageError: If signing fails
        """
        try:
            result = self._bucket().create_signed_url(path, expires_in)
        except Exception as e:
            raise StorageError(f"Failed to sign URL for {path}: {e}")

        url: Optional[str] = None
        if isinstance(result, dict):
            url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise StorageError(f"Failed to sign URL for {path}: empty response")
        return url


def create_blob_store(supabase_client: Optional[Any] = None) -> BlobStore:
    """
    Create a BlobStore using application settings.

    Args:
        supabase_client: Optional Supabase client, created from settings if omitted

    Returns:
        Configured BlobStore instance
    """
    from src.config import get_settings

    settings = get_settings()
    if supabase_client is None:
        from supabase import create_client

        supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return BlobStore(supabase_client=supabase_client, bucket=settings.storage_bucket)
