"""Progress reporting into the job record store."""

import logging
import re
from typing import Optional

from src.services.chunker import progress_percentage
from src.services.job_store import JobStore
from src.utils.errors import JobStoreError

logger = logging.getLogger(__name__)

_PERCENT_PATTERN = re.compile(r"\((\d{1,3})%\)\s*$")


def format_progress(message: str, percent: Optional[int] = None) -> str:
    """Append a machine-parseable percentage to a progress message."""
    if percent is None:
        return message
    return f"{message} ({max(0, min(100, percent))}%)"


def parse_progress_percentage(message: Optional[str]) -> Optional[int]:
    """Extract the percentage from a progress message, if it has one."""
    if not message:
        return None
    match = _PERCENT_PATTERN.search(message)
    return int(match.group(1)) if match else None


class ProgressReporter:
    """
    Writes progress messages for one job.

    Percentages are tracked per stage: a value that does not exceed the
    last one written for the same stage is dropped, so pollers never see
    a stage's progress move backwards. Store failures are logged, not
    raised, because progress is advisory.
    """

    def __init__(self, store: JobStore, job_id: str) -> None:
        self.store = store
        self.job_id = job_id
        self._last_percent: dict[str, int] = {}

    async def report(
        self, message: str, percent: Optional[int] = None, stage: Optional[str] = None
    ) -> bool:
        """
        Write a progress message.

        Args:
            message: Human-readable progress text
            percent: Optional completion percentage for the stage
            stage: Stage key used for the monotonic percentage check

        Returns:
            True if the message was written
        """
        if percent is not None and stage is not None:
            last = self._last_percent.get(stage)
            if last is not None and percent <= last:
                logger.debug(
                    f"Job {self.job_id}: skipping {stage} progress {percent}% (last {last}%)"
                )
                return False
            self._last_percent[stage] = percent

        text = format_progress(message, percent)
        try:
            written = await self.store.update_progress(self.job_id, text)
        except JobStoreError as e:
            logger.error(f"Failed to update progress for job {self.job_id}: {e}")
            return False

        logger.info(f"Job {self.job_id}: {text}")
        return written

    async def conversion(self, extension: str, target: str, percent: int) -> bool:
        return await self.report(
            f"Converting {extension} audio to {target}", percent, stage="converting"
        )

    async def chunk(self, index: int, total: int) -> bool:
        """Report that chunk ``index`` (1-based) of ``total`` is about to be sent."""
        return await self.report(
            f"Processing segment {index} of {total}",
            progress_percentage(index - 1, total),
            stage="transcribing",
        )
