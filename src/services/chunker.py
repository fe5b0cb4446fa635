"""Chunk planner that fits audio blobs under the engine's upload ceiling."""

import logging
import math
from typing import Iterable, Optional

from src.models.chunk import ByteRange, ChunkPlan
from src.utils.errors import ChunkingError

logger = logging.getLogger(__name__)


def progress_percentage(completed: int, total: int) -> int:
    """Percentage of chunks completed, rounded to the nearest integer."""
    if total <= 0:
        return 0
    return round(100 * completed / total)


class ChunkPlanner:
    """Decides whether a blob needs splitting and computes its byte ranges."""

    def __init__(
        self,
        max_file_size: int,
        safety_margin: int,
        overlap: int = 512 * 1024,
        header_size: int = 1024 * 1024,
        header_preserving_formats: Iterable[str] = ("m4a", "mp4"),
    ) -> None:
        """
        Initialize the ChunkPlanner.

        Args:
            max_file_size: Engine ceiling for a single request, in bytes
            safety_margin: Bytes reserved below the ceiling for container overhead
            overlap: Bytes shared by consecutive chunks in regular chunking
            header_size: Leading bytes prepended to every chunk in header chunking
            header_preserving_formats: Extensions whose frames need the file header

        Raises:
            ChunkingError: If the sizes leave no room for chunk content
        """
        if max_file_size <= 0:
            raise ChunkingError("max_file_size must be positive")
        if safety_margin < 0 or safety_margin >= max_file_size:
            raise ChunkingError("safety_margin must be in [0, max_file_size)")

        self.max_file_size = max_file_size
        self.safety_margin = safety_margin
        self.chunk_size = max_file_size - safety_margin

        if overlap < 0 or overlap >= self.chunk_size:
            raise ChunkingError("overlap must be smaller than the effective chunk size")
        if header_size < 0 or header_size >= self.chunk_size:
            raise ChunkingError("header_size must be smaller than the effective chunk size")

        self.overlap = overlap
        self.header_size = header_size
        self.header_preserving_formats = {ext.lower() for ext in header_preserving_formats}

    def fits(self, total_size: int) -> bool:
        """Whether a blob can be sent to the engine in one request."""
        return total_size <= self.max_file_size

    def uses_header_chunking(self, extension: str) -> bool:
        return extension.lower() in self.header_preserving_formats

    def plan(self, total_size: int, extension: str) -> ChunkPlan:
        """
        Build the chunk plan for a blob.

        Args:
            total_size: Blob size in bytes
            extension: Effective file extension of the blob

        Returns:
            ChunkPlan with one implicit chunk if the blob fits, else the split
        """
        if total_size < 0:
            raise ChunkingError("total_size must not be negative")

        extension = extension.lower()
        if self.fits(total_size):
            return ChunkPlan(
                extension=extension,
                total_size=total_size,
                strategy="single",
                ranges=[ByteRange(start=0, end=total_size)],
            )

        ranges = self.split_ranges(total_size, extension)
        strategy = "header" if self.uses_header_chunking(extension) else "regular"
        plan = ChunkPlan(
            extension=extension,
            total_size=total_size,
            strategy=strategy,
            ranges=ranges,
            header_size=self.header_size if strategy == "header" else 0,
        )
        logger.info(
            f"Planned {plan.chunk_count} {strategy} chunks for {total_size} byte .{extension} file"
        )
        return plan

    def split_ranges(self, total_size: int, extension: str) -> list[ByteRange]:
        """
        Partition a blob larger than the effective chunk size.

        Regular chunking uses a stride of chunk_size - overlap so consecutive
        ranges share ``overlap`` bytes. Header chunking partitions the bytes
        after the header with a budget of chunk_size - header_size, since the
        header is prepended to every range when sliced.
        """
        if self.uses_header_chunking(extension):
            return self._header_ranges(total_size)
        return self._regular_ranges(total_size)

    def _regular_ranges(self, total_size: int) -> list[ByteRange]:
        stride = self.chunk_size - self.overlap
        count = math.ceil(total_size / stride)
        ranges = []
        for i in range(count):
            start = i * stride
            end = min(start + self.chunk_size, total_size)
            ranges.append(ByteRange(start=start, end=end))
        return ranges

    def _header_ranges(self, total_size: int) -> list[ByteRange]:
        if total_size <= self.header_size:
            raise ChunkingError(
                f"File of {total_size} bytes has no content after a {self.header_size} byte header"
            )
        budget = self.chunk_size - self.header_size
        content_size = total_size - self.header_size
        count = math.ceil(content_size / budget)
        ranges = []
        for i in range(count):
            start = self.header_size + i * budget
            end = min(start + budget, total_size)
            ranges.append(ByteRange(start=start, end=end))
        return ranges

    def slice(self, data: bytes, plan: ChunkPlan) -> list[bytes]:
        """
        Materialize the chunks of a plan, in order.

        Header chunks are the source header followed by their content range.
        """
        if len(data) != plan.total_size:
            raise ChunkingError(
                f"Plan was built for {plan.total_size} bytes but blob has {len(data)}"
            )

        header: Optional[bytes] = data[: plan.header_size] if plan.header_size else None
        chunks = []
        for byte_range in plan.ranges:
            content = data[byte_range.start : byte_range.end]
            chunks.append(header + content if header is not None else content)
        return chunks


def create_chunk_planner() -> ChunkPlanner:
    """
    Create a ChunkPlanner using application settings.

    Returns:
        Configured ChunkPlanner instance
    """
    from src.config import get_settings

    settings = get_settings()
    return ChunkPlanner(
        max_file_size=settings.max_file_size,
        safety_margin=settings.safety_margin_bytes,
        overlap=settings.chunk_overlap_bytes,
        header_size=settings.header_size_bytes,
        header_preserving_formats=settings.header_preserving_formats,
    )
