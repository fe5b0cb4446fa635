"""Chunk planning and per-chunk outcome models."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from src.models.job import ChunkResult, TranscriptSegment

ChunkStrategy = Literal["single", "regular", "header"]


class ByteRange(BaseModel):
    """Half-open byte interval [start, end) of the source blob."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @property
    def size(self) -> int:
        return self.end - self.start


class ChunkPlan(BaseModel):
    """How a blob is cut into engine-sized pieces."""

    extension: str
    total_size: int = Field(ge=0)
    strategy: ChunkStrategy
    ranges: list[ByteRange]
    # Bytes prepended to every chunk (header strategy only)
    header_size: int = Field(default=0, ge=0)

    @property
    def chunk_count(self) -> int:
        return len(self.ranges)

    @property
    def requires_split(self) -> bool:
        return self.strategy != "single"

    def chunk_sizes(self) -> list[int]:
        """Byte size of every chunk as sent to the engine."""
        return [self.header_size + r.size for r in self.ranges]


class ChunkSuccess(BaseModel):
    """A chunk the engine transcribed."""

    kind: Literal["success"] = "success"
    index: int = Field(ge=1)
    text: str
    segments: Optional[list[TranscriptSegment]] = None
    duration: Optional[float] = None


class ChunkFailure(BaseModel):
    """A chunk whose engine call failed."""

    kind: Literal["failure"] = "failure"
    index: int = Field(ge=1)
    reason: str


ChunkOutcome = Annotated[Union[ChunkSuccess, ChunkFailure], Field(discriminator="kind")]


class TranscriptAggregate:
    """
    Ordered per-chunk outcomes of one job.

    Distinguishes fully succeeded, partially succeeded and fully failed
    jobs, and builds the final transcript and segments from the successes.
    """

    def __init__(self, outcomes: list[Union[ChunkSuccess, ChunkFailure]]) -> None:
        self.outcomes = sorted(outcomes, key=lambda o: o.index)

    @property
    def succeeded(self) -> list[ChunkSuccess]:
        return [o for o in self.outcomes if isinstance(o, ChunkSuccess)]

    @property
    def failed(self) -> list[ChunkFailure]:
        return [o for o in self.outcomes if isinstance(o, ChunkFailure)]

    @property
    def text(self) -> str:
        """Successful chunk texts joined by a single space, in chunk order."""
        return " ".join(o.text for o in self.succeeded)

    @property
    def is_complete(self) -> bool:
        return bool(self.outcomes) and not self.failed

    @property
    def is_empty(self) -> bool:
        return not self.succeeded or not self.text.strip()

    @property
    def status(self) -> Literal["complete", "partial", "none"]:
        if self.is_empty:
            return "none"
        return "complete" if self.is_complete else "partial"

    def segments(self, plan: ChunkPlan) -> Optional[list[TranscriptSegment]]:
        """
        Time-aligned segments across all chunks.

        A chunk's offset is the play time of the source bytes before its
        range start. Each chunk's seconds-per-byte rate is its engine
        duration over the bytes it was sent, so overlapping bytes and the
        prepended header are not counted towards later offsets. Returns
        None unless every chunk of the plan succeeded with timing data.

        Args:
            plan: The plan the chunks were cut from
        """
        if not self.is_complete or len(self.outcomes) != plan.chunk_count:
            return None

        sizes = plan.chunk_sizes()
        merged: list[TranscriptSegment] = []
        offset = 0.0
        for position, outcome in enumerate(self.succeeded):
            if outcome.segments is None:
                return None
            merged.extend(segment.shifted(offset) for segment in outcome.segments)
            if position + 1 == plan.chunk_count or not sizes[position]:
                continue

            duration = outcome.duration
            if duration is None:
                duration = outcome.segments[-1].end if outcome.segments else 0.0
            advance = plan.ranges[position + 1].start - plan.ranges[position].start
            offset += duration * advance / sizes[position]
        return merged

    def summary(self) -> list[ChunkResult]:
        """Per-chunk outcome list persisted on the job record."""
        results = []
        for outcome in self.outcomes:
            if isinstance(outcome, ChunkSuccess):
                results.append(ChunkResult(index=outcome.index, outcome="success"))
            else:
                results.append(
                    ChunkResult(index=outcome.index, outcome="failure", reason=outcome.reason)
                )
        return results
