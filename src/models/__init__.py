"""Pydantic data models for the audio transcriber."""

from src.models.chunk import (
    ByteRange,
    ChunkFailure,
    ChunkOutcome,
    ChunkPlan,
    ChunkSuccess,
    TranscriptAggregate,
)
from src.models.job import ChunkResult, TranscriptionJob, TranscriptSegment

__all__ = [
    "TranscriptionJob",
    "TranscriptSegment",
    "ChunkResult",
    "ByteRange",
    "ChunkPlan",
    "ChunkSuccess",
    "ChunkFailure",
    "ChunkOutcome",
    "TranscriptAggregate",
]
