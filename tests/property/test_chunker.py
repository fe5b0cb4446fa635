"""Property-based tests for chunk planning.

Property 5: Chunks Fit Under The Ceiling
Property 6: Chunks Cover The Source In Order
"""

import math

import pytest
from hypothesis import assume, given, settings, strategies as st

from src.services.chunker import ChunkPlanner, progress_percentage
from src.utils.errors import ChunkingError

MIB = 1024 * 1024


# ==================== Strategies ====================


@st.composite
def planner_strategy(draw: st.DrawFn) -> ChunkPlanner:
    """Generate planners with small, valid byte budgets."""
    max_file_size = draw(st.integers(min_value=50, max_value=2000))
    safety_margin = draw(st.integers(min_value=0, max_value=max_file_size // 2))
    chunk_size = max_file_size - safety_margin
    overlap = draw(st.integers(min_value=0, max_value=chunk_size // 2))
    header_size = draw(st.integers(min_value=1, max_value=chunk_size // 2))
    return ChunkPlanner(
        max_file_size=max_file_size,
        safety_margin=safety_margin,
        overlap=overlap,
        header_size=header_size,
        header_preserving_formats=["m4a", "mp4"],
    )


oversized_factor = st.floats(min_value=1.0, max_value=12.0, allow_nan=False)


# ==================== Property Tests ====================


class TestProperty5ChunksFitUnderCeiling:
    """
    Property 5: Chunks Fit Under The Ceiling

    *For any* source larger than the engine ceiling, every chunk sent to the
    engine SHALL be at most the effective chunk size (ceiling minus safety margin).
    """

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=200)
    def test_regular_chunks_fit(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        plan = planner.plan(total, "mp3")

        assert plan.strategy == "regular"
        assert all(size <= planner.chunk_size for size in plan.chunk_sizes())
        stride = planner.chunk_size - planner.overlap
        assert plan.chunk_count == math.ceil(total / stride)

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=200)
    def test_header_chunks_fit(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        plan = planner.plan(total, "m4a")

        assert plan.strategy == "header"
        assert plan.header_size == planner.header_size
        assert all(size <= planner.chunk_size for size in plan.chunk_sizes())
        budget = planner.chunk_size - planner.header_size
        assert plan.chunk_count == math.ceil((total - planner.header_size) / budget)

    @given(planner=planner_strategy(), data=st.data())
    @settings(max_examples=200)
    def test_sources_at_or_under_ceiling_are_single(self, planner: ChunkPlanner, data) -> None:
        total = data.draw(st.integers(min_value=0, max_value=planner.max_file_size))
        plan = planner.plan(total, data.draw(st.sampled_from(["mp3", "m4a", "wav"])))

        assert plan.strategy == "single"
        assert plan.chunk_count == 1
        assert plan.ranges[0].start == 0 and plan.ranges[0].end == total
        assert not plan.requires_split

    @given(planner=planner_strategy(), data=st.data())
    @settings(max_examples=100)
    def test_split_ranges_between_chunk_size_and_ceiling(self, planner: ChunkPlanner, data) -> None:
        assume(planner.chunk_size < planner.max_file_size)
        total = data.draw(
            st.integers(min_value=planner.chunk_size + 1, max_value=planner.max_file_size)
        )

        ranges = planner.split_ranges(total, "mp3")

        assert all(r.size <= planner.chunk_size for r in ranges)
        assert len(ranges) == math.ceil(total / (planner.chunk_size - planner.overlap))
        assert ranges[-1].end == total


class TestProperty6ChunksCoverSource:
    """
    Property 6: Chunks Cover The Source In Order

    *For any* split, the chunk ranges SHALL start at 0 (or the header end),
    end at the source size, and leave no gaps.
    """

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=200)
    def test_regular_ranges_cover_source(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        ranges = planner.plan(total, "wav").ranges

        assert ranges[0].start == 0
        assert ranges[-1].end == total
        for previous, current in zip(ranges, ranges[1:]):
            assert current.start > previous.start
            # Consecutive ranges touch or overlap
            assert current.start <= previous.end

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=200)
    def test_header_ranges_partition_content(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        ranges = planner.plan(total, "mp4").ranges

        assert ranges[0].start == planner.header_size
        assert ranges[-1].end == total
        for previous, current in zip(ranges, ranges[1:]):
            assert current.start == previous.end

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=100)
    def test_sliced_header_chunks_rebuild_source(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        data = bytes(i % 251 for i in range(total))
        plan = planner.plan(total, "m4a")

        chunks = planner.slice(data, plan)

        header = data[: planner.header_size]
        assert all(chunk.startswith(header) for chunk in chunks)
        assert header + b"".join(c[planner.header_size :] for c in chunks) == data

    @given(planner=planner_strategy(), factor=oversized_factor)
    @settings(max_examples=100)
    def test_sliced_regular_chunks_match_ranges(self, planner: ChunkPlanner, factor: float) -> None:
        total = int(planner.max_file_size * factor) + 1
        data = bytes(i % 251 for i in range(total))
        plan = planner.plan(total, "mp3")

        chunks = planner.slice(data, plan)

        assert [len(c) for c in chunks] == plan.chunk_sizes()
        assert [data[r.start : r.end] for r in plan.ranges] == chunks


class TestDefaultPlanner:
    """Default byte budgets: 25 MiB ceiling, 2 MiB margin, 512 KiB overlap, 1 MiB header."""

    def setup_method(self) -> None:
        self.planner = ChunkPlanner(max_file_size=25 * MIB, safety_margin=2 * MIB)

    def test_forty_mib_mp3_splits_in_two(self) -> None:
        plan = self.planner.plan(40 * MIB, "mp3")

        assert plan.chunk_count == 2
        assert plan.ranges[0].start == 0
        assert plan.ranges[0].end == 23 * MIB
        assert plan.ranges[1].start == 23 * MIB - 512 * 1024
        assert plan.ranges[1].end == 40 * MIB
        assert max(plan.chunk_sizes()) <= 23 * MIB

    def test_forty_mib_m4a_uses_header_chunks(self) -> None:
        plan = self.planner.plan(40 * MIB, "M4A")

        assert plan.strategy == "header"
        assert plan.extension == "m4a"
        assert plan.chunk_count == 2
        assert plan.ranges[0].start == MIB
        assert max(plan.chunk_sizes()) <= 23 * MIB

    def test_ceiling_boundary(self) -> None:
        assert self.planner.plan(25 * MIB, "mp3").chunk_count == 1
        assert self.planner.plan(25 * MIB + 1, "mp3").chunk_count == 2

    def test_slice_rejects_mismatched_data(self) -> None:
        planner = ChunkPlanner(max_file_size=100, safety_margin=20, overlap=10, header_size=8)
        plan = planner.plan(50, "mp3")
        with pytest.raises(ChunkingError):
            planner.slice(b"short", plan)


class TestPlannerValidation:
    """Invalid byte budgets are rejected up front."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_file_size": 0, "safety_margin": 0},
            {"max_file_size": 100, "safety_margin": 100},
            {"max_file_size": 100, "safety_margin": -1},
            {"max_file_size": 100, "safety_margin": 20, "overlap": 80, "header_size": 8},
            {"max_file_size": 100, "safety_margin": 20, "overlap": 10, "header_size": 80},
        ],
    )
    def test_invalid_sizes(self, kwargs: dict) -> None:
        with pytest.raises(ChunkingError):
            ChunkPlanner(**kwargs)

    def test_negative_total_size(self) -> None:
        with pytest.raises(ChunkingError):
            ChunkPlanner(max_file_size=100, safety_margin=20, overlap=10, header_size=8).plan(-1, "mp3")


class TestProgressPercentage:
    @given(total=st.integers(min_value=1, max_value=500))
    @settings(max_examples=100)
    def test_bounds(self, total: int) -> None:
        assert progress_percentage(0, total) == 0
        assert progress_percentage(total, total) == 100

    @given(total=st.integers(min_value=2, max_value=100), data=st.data())
    @settings(max_examples=100)
    def test_non_decreasing(self, total: int, data) -> None:
        done = data.draw(st.integers(min_value=0, max_value=total - 1))
        assume(done + 1 <= total)
        assert progress_percentage(done, total) <= progress_percentage(done + 1, total)

    def test_empty_total(self) -> None:
        assert progress_percentage(0, 0) == 0
