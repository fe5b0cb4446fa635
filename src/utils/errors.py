"""Custom exception classes for the transcription pipeline."""

from typing import Any, Optional


class TranscriberError(Exception):
    """Base exception for all application errors."""

    pass


class SubmissionError(TranscriberError):
    """A transcription request was rejected before a job was created."""

    pass


class UnsupportedFormatError(SubmissionError):
    """File extension is not in the supported set."""

    def __init__(self, extension: str, supported: list[str]) -> None:
        self.extension = extension
        self.supported = list(supported)
        super().__init__(
            f"Unsupported file format: {extension or 'none'}. "
            f"Supported formats: {', '.join(self.supported)}"
        )


class StorageError(TranscriberError):
    """Errors from the blob store."""

    pass


class DownloadError(StorageError):
    """Source audio could not be downloaded."""

    pass


class JobStoreError(TranscriberError):
    """Errors reading or writing job records."""

    pass


class NormalizationError(TranscriberError):
    """Audio format conversion failed."""

    pass


class ChunkingError(TranscriberError):
    """Invalid chunk planner configuration or input."""

    pass


class TranscriptionEngineError(TranscriberError):
    """Errors from the speech-to-text engine."""

    pass


class WhisperAPIError(TranscriptionEngineError):
    """Whisper API returned an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.payload = message
        super().__init__(f"OpenAI API error {status_code}: {message}")


class EmptyTranscriptError(TranscriberError):
    """No chunk produced any transcript text."""

    def __init__(self, message: str, chunk_results: Optional[list[Any]] = None) -> None:
        self.chunk_results = chunk_results
        super().__init__(message)
