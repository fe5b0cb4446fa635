"""Job record store backed by a Supabase table."""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from src.models.job import ChunkResult, TranscriptionJob, TranscriptSegment, utcnow
from src.utils.errors import JobStoreError

logger = logging.getLogger(__name__)


class JobStore:
    """Reads and updates transcription job records."""

    def __init__(self, supabase_client: Any, table: str = "transcriptions") -> None:
        """
        Initialize the JobStore.

        Args:
            supabase_client: Supabase client instance
            table: Name of the jobs table
        """
        self.supabase = supabase_client
        self.table = table
        # Last updated_at written per job, so timestamps never go backwards
        self._last_written: dict[str, datetime] = {}

    def _next_timestamp(self, job_id: str) -> datetime:
        now = utcnow()
        last = self._last_written.get(job_id)
        if last is not None and now < last:
            now = last
        self._last_written[job_id] = now
        return now

    async def create_job(self, job: TranscriptionJob) -> str:
        """
        Create a new job record.

        Args:
            job: TranscriptionJob to persist

        Returns:
            The id of the created job

        Raises:
            JobStoreError: If creation fails
        """
        try:
            result = self.supabase.table(self.table).insert(job.to_record()).execute()
        except Exception as e:
            raise JobStoreError(f"Failed to create transcription record: {e}")

        if not result.data:
            raise JobStoreError("Failed to create transcription record: no row returned")

        self._last_written[job.id] = job.updated_at
        logger.info(f"Created transcription job {job.id} for {job.file_name}")
        return job.id

    async def get_job(self, job_id: str) -> Optional[TranscriptionJob]:
        """
        Retrieve a job by ID.

        Args:
            job_id: The job ID to retrieve

        Returns:
            TranscriptionJob if found, None otherwise

        Raises:
            JobStoreError: If the store cannot be read
        """
        try:
            result = self.supabase.table(self.table).select("*").eq("id", job_id).execute()
        except Exception as e:
            raise JobStoreError(f"Failed to read transcription {job_id}: {e}")

        if not result.data:
            return None
        try:
            return TranscriptionJob.from_record(result.data[0])
        except ValidationError as e:
            raise JobStoreError(f"Transcription {job_id} has an invalid record: {e}")

    async def _update(
        self, job_id: str, fields: dict[str, Any], only_if_processing: bool = False
    ) -> bool:
        update_data = dict(fields)
        update_data["updated_at"] = self._next_timestamp(job_id).isoformat()

        try:
            query = self.supabase.table(self.table).update(update_data).eq("id", job_id)
            if only_if_processing:
                query = query.eq("status", "processing")
            result = query.execute()
        except Exception as e:
            raise JobStoreError(f"Failed to update transcription {job_id}: {e}")

        return bool(result.data)

    async def update_progress(self, job_id: str, message: str) -> bool:
        """
        Overwrite the progress message of a processing job.

        Args:
            job_id: The job ID to update
            message: Human-readable progress text

        Returns:
            True if a processing row was updated
        """
        return await self._update(
            job_id,
            {"status": "processing", "progress_message": message},
            only_if_processing=True,
        )

    async def mark_completed(
        self,
        job_id: str,
        transcript: str,
        segments: Optional[list[TranscriptSegment]] = None,
        chunk_results: Optional[list[ChunkResult]] = None,
        audio_duration: Optional[int] = None,
        progress_message: Optional[str] = None,
    ) -> bool:
        """
        Complete a job, writing status and transcript in one update.

        Returns:
            True if the job moved from processing to completed
        """
        fields: dict[str, Any] = {"status": "completed", "transcript": transcript}
        if segments is not None:
            fields["segments"] = [s.model_dump(mode="json") for s in segments]
        if chunk_results is not None:
            fields["chunk_results"] = [c.model_dump(mode="json") for c in chunk_results]
        if audio_duration is not None:
            fields["audio_duration"] = audio_duration
        if progress_message is not None:
            fields["progress_message"] = progress_message

        updated = await self._update(job_id, fields, only_if_processing=True)
        if updated:
            self._last_written.pop(job_id, None)
        return updated

    async def mark_failed(
        self,
        job_id: str,
        error: str,
        chunk_results: Optional[list[ChunkResult]] = None,
    ) -> bool:
        """
        Fail a job, writing status and error in one update.

        Returns:
            True if the job moved from processing to failed
        """
        fields: dict[str, Any] = {"status": "failed", "error": error}
        if chunk_results is not None:
            fields["chunk_results"] = [c.model_dump(mode="json") for c in chunk_results]

        updated = await self._update(job_id, fields, only_if_processing=True)
        if updated:
            self._last_written.pop(job_id, None)
        return updated


def create_job_store(supabase_client: Optional[Any] = None) -> JobStore:
    """
    Create a JobStore using application settings.

    Args:
        supabase_client: Optional Supabase client, created from settings if omitted

    Returns:
        Configured JobStore instance
    """
    from src.config import get_settings

    settings = get_settings()
    if supabase_client is None:
        from supabase import create_client

        supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return JobStore(supabase_client=supabase_client, table=settings.jobs_table)
