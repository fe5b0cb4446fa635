"""Transcription job Pydantic models."""

from datetime import datetime, timezone
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

JobState = Literal["processing", "completed", "failed"]
TERMINAL_STATES: tuple[str, ...] = ("completed", "failed")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptSegment(BaseModel):
    """A time-aligned fragment of the transcript."""

    start: float = Field(ge=0)
    end: float = Field(ge=0)
    text: str

    @model_validator(mode="after")
    def end_after_start(self) -> "TranscriptSegment":
        """Validate that the segment does not end before it starts."""
        if self.end < self.start:
            raise ValueError("segment end must not be before its start")
        return self

    def shifted(self, offset: float) -> "TranscriptSegment":
        """Return a copy moved later in time by ``offset`` seconds."""
        return TranscriptSegment(start=self.start + offset, end=self.end + offset, text=self.text)


class ChunkResult(BaseModel):
    """Persisted outcome of one chunk's engine call."""

    index: int = Field(ge=1)
    outcome: Literal["success", "failure"]
    reason: Optional[str] = None


class TranscriptionJob(BaseModel):
    """Lifecycle record of one transcription request."""

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    file_name: str = Field(min_length=1)
    file_path: str = Field(min_length=1)
    file_size: int = Field(ge=0)
    custom_title: Optional[str] = None
    status: JobState = "processing"
    progress_message: Optional[str] = None
    error: Optional[str] = None
    transcript: Optional[str] = None
    segments: Optional[list[TranscriptSegment]] = None
    chunk_results: Optional[list[ChunkResult]] = None
    audio_duration: Optional[int] = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def terminal_fields_match_status(self) -> "TranscriptionJob":
        """Transcript only on completed jobs, error only on failed jobs."""
        if self.status == "completed" and self.transcript is None:
            raise ValueError("completed job must carry a transcript")
        if self.status != "completed" and self.transcript is not None:
            raise ValueError("transcript is only set on completed jobs")
        if self.status != "failed" and self.error is not None:
            raise ValueError("error is only set on failed jobs")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible row for the record store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "TranscriptionJob":
        """Build a job from a record store row."""
        return cls.model_validate(row)
