"""Transcription orchestrator: the per-job pipeline state machine."""

import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Union

from src.models.chunk import ChunkFailure, ChunkPlan, ChunkSuccess, TranscriptAggregate
from src.models.job import ChunkResult, TranscriptionJob
from src.services.audio import probe_duration_seconds
from src.services.chunker import ChunkPlanner
from src.services.job_store import JobStore
from src.services.normalizer import FormatNormalizer
from src.services.progress import ProgressReporter
from src.services.storage import BlobStore
from src.services.whisper import WhisperClient
from src.utils.errors import (
    DownloadError,
    EmptyTranscriptError,
    JobStoreError,
    TranscriberError,
    TranscriptionEngineError,
    UnsupportedFormatError,
)
from src.utils.formats import file_extension, file_stem
from src.utils.retry import retry_call

logger = logging.getLogger(__name__)


class JobStage(str, Enum):
    CREATED = "created"
    DOWNLOADING = "downloading"
    NORMALIZING = "normalizing"
    PLANNING = "planning"
    TRANSCRIBING = "transcribing"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STAGES = (JobStage.COMPLETED, JobStage.FAILED)


class JobRun:
    """State of one orchestrator run. Terminal stages are absorbing."""

    def __init__(self, job: TranscriptionJob, reporter: ProgressReporter) -> None:
        self.job = job
        self.reporter = reporter
        self.stage = JobStage.CREATED

    def enter(self, stage: JobStage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Job {self.job.id} is already {self.stage.value}")
        logger.info(f"Job {self.job.id}: {self.stage.value} -> {stage.value}")
        self.stage = stage


class TranscriptionOrchestrator:
    """
    Runs one transcription job end to end.

    Download, optional format normalization, chunk planning, sequential
    per-chunk engine calls, aggregation and the terminal record update.
    Chunk failures are recorded and skipped; every other failure ends the
    job as failed. ``run`` never raises, so it is safe to schedule as a
    detached background task.
    """

    def __init__(
        self,
        job_store: JobStore,
        blob_store: BlobStore,
        engine: WhisperClient,
        planner: ChunkPlanner,
        normalizer: FormatNormalizer,
        supported_formats: Iterable[str],
        chunk_max_attempts: int = 1,
        download_attempts: int = 3,
        terminal_write_attempts: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        """
        Initialize the TranscriptionOrchestrator.

        Args:
            job_store: Record store for job status and results
            blob_store: Store holding the uploaded audio
            engine: Speech-to-text adapter
            planner: Chunk planner
            normalizer: Format normalizer
            supported_formats: Extensions accepted by the pipeline
            chunk_max_attempts: Engine attempts per chunk before it counts as failed
            download_attempts: Attempts to download the source blob
            terminal_write_attempts: Attempts for the final status write
            retry_base_delay: Base backoff delay in seconds
        """
        self.job_store = job_store
        self.blob_store = blob_store
        self.engine = engine
        self.planner = planner
        self.normalizer = normalizer
        self.supported_formats = [ext.lower() for ext in supported_formats]
        self.chunk_max_attempts = chunk_max_attempts
        self.download_attempts = download_attempts
        self.terminal_write_attempts = terminal_write_attempts
        self.retry_base_delay = retry_base_delay

    async def run(self, job: TranscriptionJob) -> None:
        """
        Process a job until it is completed or failed.

        Args:
            job: The freshly created job record
        """
        run = JobRun(job, ProgressReporter(self.job_store, job.id))
        try:
            await self._process(run)
        except EmptyTranscriptError as e:
            logger.error(f"Job {job.id} failed: {e}")
            await self._finish_failed(run, str(e), chunk_results=e.chunk_results)
        except TranscriberError as e:
            logger.error(f"Job {job.id} failed during {run.stage.value}: {e}")
            await self._finish_failed(run, str(e))
        except Exception as e:
            logger.exception(f"Job {job.id} crashed during {run.stage.value}: {e}")
            await self._finish_failed(run, f"Processing error: {e}")

    async def _process(self, run: JobRun) -> None:
        job = run.job
        extension = file_extension(job.file_name)
        if extension not in self.supported_formats:
            raise UnsupportedFormatError(extension, self.supported_formats)

        run.enter(JobStage.DOWNLOADING)
        source = await retry_call(
            self.blob_store.download,
            job.file_path,
            max_attempts=self.download_attempts,
            base_delay=self.retry_base_delay,
            exceptions=(DownloadError,),
        )
        await run.reporter.report("File downloaded, starting transcription")

        run.enter(JobStage.PLANNING)
        data = source
        plan = self.planner.plan(len(data), extension)

        if plan.requires_split and self.normalizer.needs_normalization(extension):
            run.enter(JobStage.NORMALIZING)
            normalized = await self.normalizer.normalize(
                data, extension, on_progress=self._conversion_progress(run, extension)
            )
            if normalized.converted:
                data, extension = normalized.data, normalized.extension
                run.enter(JobStage.PLANNING)
                plan = self.planner.plan(len(data), extension)

        chunks = self.planner.slice(data, plan)
        total = plan.chunk_count
        if total > 1:
            await run.reporter.report(f"Splitting file into {total} segments for processing")

        run.enter(JobStage.TRANSCRIBING)
        stem = file_stem(job.file_name)
        outcomes: list[Union[ChunkSuccess, ChunkFailure]] = []
        for index, chunk in enumerate(chunks, start=1):
            if total > 1:
                await run.reporter.chunk(index, total)
                name = f"{stem}_chunk{index}.{extension}"
            else:
                name = f"{stem}.{extension}"
            outcomes.append(await self._transcribe_chunk(job.id, index, total, chunk, name))

        if total == 1 and isinstance(outcomes[0], ChunkSuccess):
            await run.reporter.report("Transcription complete, finalizing")

        run.enter(JobStage.AGGREGATING)
        aggregate = TranscriptAggregate(outcomes)
        logger.info(
            f"Job {job.id}: {len(aggregate.succeeded)}/{total} segments transcribed successfully"
        )

        if aggregate.status == "none":
            raise EmptyTranscriptError(
                f"Transcription produced an empty transcript "
                f"({len(aggregate.succeeded)} of {total} segments succeeded)",
                chunk_results=aggregate.summary(),
            )

        if aggregate.status == "partial":
            failed = ", ".join(str(f.index) for f in aggregate.failed)
            logger.warning(f"Job {job.id}: completing without segments {failed}")

        duration = self._confirm_duration(source, aggregate, job.audio_duration)
        await self._finish_completed(run, aggregate, plan, duration)

    def _conversion_progress(
        self, run: JobRun, extension: str
    ) -> Callable[[int], Awaitable[None]]:
        target = self.normalizer.target_format

        async def on_progress(percent: int) -> None:
            await run.reporter.conversion(extension, target, percent)

        return on_progress

    async def _transcribe_chunk(
        self, job_id: str, index: int, total: int, chunk: bytes, name: str
    ) -> Union[ChunkSuccess, ChunkFailure]:
        logger.info(f"Job {job_id}: transcribing segment {index}/{total} ({len(chunk)} bytes)")
        try:
            result = await retry_call(
                self.engine.transcribe,
                chunk,
                name,
                max_attempts=self.chunk_max_attempts,
                base_delay=self.retry_base_delay,
                exceptions=(TranscriptionEngineError,),
            )
        except Exception as e:
            logger.error(f"Job {job_id}: error processing segment {index}/{total}: {e}")
            return ChunkFailure(index=index, reason=str(e))

        return ChunkSuccess(
            index=index,
            text=result.text,
            segments=result.segments,
            duration=result.duration,
        )

    def _confirm_duration(
        self, source: bytes, aggregate: TranscriptAggregate, estimate: Optional[int]
    ) -> Optional[int]:
        probed = probe_duration_seconds(source)
        if probed is not None:
            return round(probed)
        if len(aggregate.outcomes) == 1 and aggregate.succeeded:
            reported = aggregate.succeeded[0].duration
            if reported is not None:
                return round(reported)
        return estimate

    async def _finish_completed(
        self,
        run: JobRun,
        aggregate: TranscriptAggregate,
        plan: ChunkPlan,
        duration: Optional[int],
    ) -> None:
        job_id = run.job.id

        async def write() -> bool:
            return await self.job_store.mark_completed(
                job_id,
                transcript=aggregate.text,
                segments=aggregate.segments(plan),
                chunk_results=aggregate.summary(),
                audio_duration=duration,
                progress_message="Transcription complete (100%)",
            )

        observed = await self._write_terminal(job_id, "completed", write)
        if observed == "completed":
            run.enter(JobStage.COMPLETED)
            logger.info(f"Job {job_id} completed ({len(aggregate.text)} characters)")
            return
        if observed == "failed":
            run.enter(JobStage.FAILED)
            logger.info(f"Job {job_id} was failed elsewhere; transcript discarded")
            return

        # The transcript could not be saved; try to surface that instead
        await self._finish_failed(run, "Failed to save transcript")

    async def _finish_failed(
        self,
        run: JobRun,
        error: str,
        chunk_results: Optional[list[ChunkResult]] = None,
    ) -> None:
        job_id = run.job.id

        async def write() -> bool:
            return await self.job_store.mark_failed(job_id, error, chunk_results=chunk_results)

        observed = await self._write_terminal(job_id, "failed", write)
        if observed is None:
            logger.error(f"Job {job_id} may be stuck in processing: could not record failure")
            return
        # Terminal stages are absorbing, so set the stage directly
        run.stage = JobStage(observed)

    async def _write_terminal(
        self, job_id: str, status: str, write: Callable[[], Awaitable[bool]]
    ) -> Optional[str]:
        """
        Write a terminal update, verify it by reading the record back, retry on failure.

        A record that is already terminal is left as it is.

        Returns:
            The terminal status found on the record afterwards, or None if
            the record could not be moved out of processing
        """

        async def attempt() -> str:
            await write()
            record = await self.job_store.get_job(job_id)
            if record is None:
                raise JobStoreError(f"Transcription {job_id} not found after update")
            if not record.is_terminal:
                raise JobStoreError(f"Transcription {job_id} still processing after update")
            if record.status != status:
                logger.warning(
                    f"Job {job_id} was already {record.status}, not marking it {status}"
                )
            return record.status

        try:
            return await retry_call(
                attempt,
                max_attempts=self.terminal_write_attempts,
                base_delay=self.retry_base_delay,
                exceptions=(JobStoreError,),
            )
        except JobStoreError as e:
            logger.error(f"Failed to mark job {job_id} {status}: {e}")
            return None


def create_orchestrator(
    job_store: Optional[JobStore] = None,
    blob_store: Optional[BlobStore] = None,
    engine: Optional[WhisperClient] = None,
) -> TranscriptionOrchestrator:
    """
    Create a TranscriptionOrchestrator using application settings.

    Args:
        job_store: Optional record store, created from settings if omitted
        blob_store: Optional blob store, created from settings if omitted
        engine: Optional speech-to-text adapter, created from settings if omitted

    Returns:
        Configured TranscriptionOrchestrator instance
    """
    from src.config import get_settings
    from src.services.chunker import create_chunk_planner
    from src.services.job_store import create_job_store
    from src.services.normalizer import create_normalizer
    from src.services.storage import create_blob_store
    from src.services.whisper import create_whisper_client

    settings = get_settings()
    return TranscriptionOrchestrator(
        job_store=job_store or create_job_store(),
        blob_store=blob_store or create_blob_store(),
        engine=engine or create_whisper_client(),
        planner=create_chunk_planner(),
        normalizer=create_normalizer(),
        supported_formats=settings.supported_formats,
        chunk_max_attempts=settings.chunk_max_attempts,
        download_attempts=settings.max_retry_attempts,
        terminal_write_attempts=settings.max_retry_attempts,
        retry_base_delay=settings.base_delay_seconds,
    )
