"""Tests for the Supabase-backed blob store."""

import pytest

from src.services.storage import BlobStore
from src.utils.errors import DownloadError, StorageError


class TestBlobStore:
    @pytest.mark.asyncio
    async def test_download(self, blob_store: BlobStore, bucket) -> None:
        bucket.files["uploads/a.mp3"] = b"ID3audio"

        assert await blob_store.download("uploads/a.mp3") == b"ID3audio"

    @pytest.mark.asyncio
    async def test_download_missing(self, blob_store: BlobStore) -> None:
        with pytest.raises(DownloadError) as exc_info:
            await blob_store.download("uploads/missing.mp3")

        assert str(exc_info.value).startswith("Failed to download file:")

    @pytest.mark.asyncio
    async def test_download_empty(self, blob_store: BlobStore, bucket) -> None:
        bucket.files["uploads/empty.mp3"] = b""

        with pytest.raises(DownloadError, match="empty"):
            await blob_store.download("uploads/empty.mp3")

    @pytest.mark.asyncio
    async def test_upload_then_sign(self, blob_store: BlobStore, bucket) -> None:
        path = await blob_store.upload("uploads/b.wav", b"RIFF", content_type="audio/wav")

        assert path == "uploads/b.wav"
        assert bucket.files[path] == b"RIFF"
        url = await blob_store.create_signed_url(path, expires_in=600)
        assert url.startswith("https://storage.example.test/uploads/b.wav")
        assert "expires=600" in url

    @pytest.mark.asyncio
    async def test_sign_failure(self, blob_store: BlobStore) -> None:
        with pytest.raises(StorageError):
            await blob_store.create_signed_url("uploads/none.mp3")
