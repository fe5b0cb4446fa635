"""Service layer for the audio transcriber."""

from src.services.audio import estimate_duration_seconds, probe_duration_seconds
from src.services.chunker import ChunkPlanner, create_chunk_planner
from src.services.job_store import JobStore, create_job_store
from src.services.normalizer import FormatNormalizer, NormalizedAudio, create_normalizer
from src.services.orchestrator import TranscriptionOrchestrator, create_orchestrator
from src.services.progress import ProgressReporter, format_progress
from src.services.storage import BlobStore, create_blob_store
from src.services.whisper import TranscriptionResult, WhisperClient, create_whisper_client

__all__ = [
    "estimate_duration_seconds",
    "probe_duration_seconds",
    "ChunkPlanner",
    "create_chunk_planner",
    "JobStore",
    "create_job_store",
    "FormatNormalizer",
    "NormalizedAudio",
    "create_normalizer",
    "TranscriptionOrchestrator",
    "create_orchestrator",
    "ProgressReporter",
    "format_progress",
    "BlobStore",
    "create_blob_store",
    "TranscriptionResult",
    "WhisperClient",
    "create_whisper_client",
]
