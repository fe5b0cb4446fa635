"""Utility modules for the audio transcriber."""

from src.utils.errors import (
    ChunkingError,
    DownloadError,
    EmptyTranscriptError,
    JobStoreError,
    NormalizationError,
    StorageError,
    SubmissionError,
    TranscriberError,
    TranscriptionEngineError,
    UnsupportedFormatError,
    WhisperAPIError,
)
from src.utils.formats import file_extension, file_stem, mime_type, validate_extension
from src.utils.retry import retry_call

__all__ = [
    "TranscriberError",
    "SubmissionError",
    "UnsupportedFormatError",
    "StorageError",
    "DownloadError",
    "JobStoreError",
    "NormalizationError",
    "ChunkingError",
    "TranscriptionEngineError",
    "WhisperAPIError",
    "EmptyTranscriptError",
    "file_extension",
    "file_stem",
    "mime_type",
    "validate_extension",
    "retry_call",
]
