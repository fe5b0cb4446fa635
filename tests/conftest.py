"""Pytest fixtures for audio transcriber tests."""

from typing import Any, Callable, List, Optional

import pytest

from src.models.job import TranscriptionJob, TranscriptSegment
from src.services.chunker import ChunkPlanner
from src.services.job_store import JobStore
from src.services.normalizer import FormatNormalizer
from src.services.orchestrator import TranscriptionOrchestrator
from src.services.storage import BlobStore

from tests.mocks import (
    SUPPORTED_FORMATS,
    FakeEngine,
    MockStorageBucket,
    MockSupabaseClient,
    MockSupabaseTable,
)


# ==================== Fixtures ====================


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    return MockSupabaseClient()


@pytest.fixture
def job_store(mock_supabase: MockSupabaseClient) -> JobStore:
    return JobStore(supabase_client=mock_supabase, table="transcriptions")


@pytest.fixture
def blob_store(mock_supabase: MockSupabaseClient) -> BlobStore:
    return BlobStore(supabase_client=mock_supabase, bucket="audio_files")


@pytest.fixture
def bucket(mock_supabase: MockSupabaseClient) -> MockStorageBucket:
    return mock_supabase.storage.from_("audio_files")


@pytest.fixture
def jobs_table(mock_supabase: MockSupabaseClient) -> MockSupabaseTable:
    return mock_supabase.table("transcriptions")


@pytest.fixture
def small_planner() -> ChunkPlanner:
    """Planner with a 100 byte ceiling: chunks of at most 80 bytes."""
    return ChunkPlanner(
        max_file_size=100,
        safety_margin=20,
        overlap=10,
        header_size=8,
        header_preserving_formats=["m4a", "mp4"],
    )


@pytest.fixture
def build_orchestrator(
    job_store: JobStore, blob_store: BlobStore, small_planner: ChunkPlanner
) -> Callable[..., TranscriptionOrchestrator]:
    """Factory for orchestrators wired to the mock stores, with no backoff delay."""

    def _build(
        engine: FakeEngine,
        normalizer: Optional[FormatNormalizer] = None,
        **kwargs: Any,
    ) -> TranscriptionOrchestrator:
        return TranscriptionOrchestrator(
            job_store=job_store,
            blob_store=blob_store,
            engine=engine,  # type: ignore[arg-type]
            planner=kwargs.pop("planner", small_planner),
            normalizer=normalizer or FormatNormalizer(enabled=False),
            supported_formats=SUPPORTED_FORMATS,
            retry_base_delay=0,
            **kwargs,
        )

    return _build


@pytest.fixture
def submit_job(job_store: JobStore, bucket: MockStorageBucket) -> Callable[..., Any]:
    """Upload bytes and create the processing record, as the submit endpoint does."""

    async def _submit(data: bytes, file_name: str = "episode.mp3") -> TranscriptionJob:
        path = f"uploads/{file_name}"
        bucket.files[path] = data
        job = TranscriptionJob(file_name=file_name, file_path=path, file_size=len(data))
        await job_store.create_job(job)
        return job

    return _submit


@pytest.fixture
def sample_segments() -> List[TranscriptSegment]:
    return [
        TranscriptSegment(start=0.0, end=2.5, text="Hello there."),
        TranscriptSegment(start=2.5, end=5.0, text="General audio."),
    ]
