"""Format normalizer that transcodes header-dependent containers with ffmpeg."""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from pydantic import BaseModel

from src.services.audio import probe_duration_seconds
from src.utils.errors import NormalizationError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


class NormalizedAudio(BaseModel):
    """Result of a normalization pass."""

    data: bytes
    extension: str
    converted: bool = False


async def _no_progress(percent: int) -> None:
    return None


class FormatNormalizer:
    """Converts containers that cannot be byte-split into a stream-friendly encoding."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        target_format: str = "mp3",
        bitrate: str = "64k",
        sample_rate: int = 16000,
        channels: int = 1,
        formats: Iterable[str] = ("m4a", "mp4"),
        enabled: bool = True,
        timeout_seconds: float = 900.0,
    ) -> None:
        """
        Initialize the FormatNormalizer.

        Args:
            ffmpeg_binary: ffmpeg executable name or path
            target_format: Output container/codec extension
            bitrate: Output audio bitrate passed to ffmpeg
            sample_rate: Output sample rate in Hz
            channels: Output channel count
            formats: Source extensions that need conversion before chunking
            enabled: Whether conversion is performed at all
            timeout_seconds: Upper bound for one conversion
        """
        self.ffmpeg_binary = ffmpeg_binary
        self.target_format = target_format
        self.bitrate = bitrate
        self.sample_rate = sample_rate
        self.channels = channels
        self.formats = {ext.lower() for ext in formats}
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds

    def needs_normalization(self, extension: str) -> bool:
        return self.enabled and extension.lower() in self.formats

    def _build_command(self, source: Path, target: Path) -> list[str]:
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-nostdin",
            "-loglevel",
            "error",
            "-y",
            "-i",
            str(source),
            "-vn",
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-b:a",
            self.bitrate,
            "-progress",
            "pipe:1",
            "-nostats",
            str(target),
        ]

    async def normalize(
        self,
        data: bytes,
        extension: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> NormalizedAudio:
        """
        Transcode audio bytes into the target format.

        Progress is reported from ffmpeg's own position reports relative to
        the probed source duration. If the duration is unknown only the
        start (0) and completion (100) events are emitted.

        Args:
            data: Source audio bytes
            extension: Source extension
            on_progress: Awaitable callback receiving percentages

        Returns:
            NormalizedAudio with the converted bytes, or the input unchanged
            if the format does not need conversion

        Raises:
            NormalizationError: If conversion fails, times out or yields nothing
        """
        extension = extension.lower()
        if not self.needs_normalization(extension):
            return NormalizedAudio(data=data, extension=extension)

        if not data:
            raise NormalizationError("Cannot convert an empty audio file")

        report = on_progress or _no_progress
        total_seconds = probe_duration_seconds(data)

        with tempfile.TemporaryDirectory(prefix="normalize_") as workdir:
            source = Path(workdir) / f"source.{extension}"
            target = Path(workdir) / f"normalized.{self.target_format}"
            source.write_bytes(data)

            await report(0)
            logger.info(
                f"Converting {len(data)} byte .{extension} file to {self.target_format}"
            )

            try:
                process = await asyncio.create_subprocess_exec(
                    *self._build_command(source, target),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError:
                raise NormalizationError(f"Audio encoder not found: {self.ffmpeg_binary}")

            try:
                stderr = await asyncio.wait_for(
                    self._watch(process, total_seconds, report),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise NormalizationError(
                    f"Audio conversion timed out after {self.timeout_seconds:.0f}s"
                )

            if process.returncode != 0:
                detail = stderr.decode("utf-8", errors="replace").strip()[-500:]
                raise NormalizationError(
                    f"Audio conversion failed (ffmpeg exit code {process.returncode}): {detail}"
                )

            converted = target.read_bytes() if target.exists() else b""

        if not converted:
            raise NormalizationError("Audio conversion produced no output")

        await report(100)
        logger.info(
            f"Converted .{extension} to .{self.target_format}: "
            f"{len(data)} -> {len(converted)} bytes"
        )
        return NormalizedAudio(data=converted, extension=self.target_format, converted=True)

    async def _watch(
        self,
        process: asyncio.subprocess.Process,
        total_seconds: Optional[float],
        report: ProgressCallback,
    ) -> bytes:
        """Relay ffmpeg progress lines until the process exits; return its stderr."""
        assert process.stdout is not None and process.stderr is not None

        stderr_task = asyncio.ensure_future(process.stderr.read())
        last_percent = 0

        async for raw_line in process.stdout:
            if not total_seconds:
                continue
            position = _parse_position_seconds(raw_line.decode("utf-8", errors="replace"))
            if position is None:
                continue
            # 100 is only reported once the output file exists
            percent = min(99, int(100 * position / total_seconds))
            if percent > last_percent:
                last_percent = percent
                await report(percent)

        stderr = await stderr_task
        await process.wait()
        return stderr


def _parse_position_seconds(line: str) -> Optional[float]:
    """Parse an ``out_time_us=`` / ``out_time_ms=`` progress line into seconds."""
    key, _, value = line.strip().partition("=")
    # ffmpeg reports microseconds under both keys
    if key not in ("out_time_us", "out_time_ms"):
        return None
    try:
        return int(value) / 1_000_000
    except ValueError:
        return None


def create_normalizer() -> FormatNormalizer:
    """
    Create a FormatNormalizer using application settings.

    Returns:
        Configured FormatNormalizer instance
    """
    from src.config import get_settings

    settings = get_settings()
    return FormatNormalizer(
        ffmpeg_binary=settings.ffmpeg_binary,
        target_format=settings.normalized_format,
        bitrate=settings.normalized_bitrate,
        formats=settings.normalize_formats,
        enabled=settings.normalize_enabled,
        timeout_seconds=settings.normalize_timeout_seconds,
    )
