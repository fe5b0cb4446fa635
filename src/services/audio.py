"""Audio metadata helpers: duration estimates and probes."""

import io
import logging
from typing import Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

logger = logging.getLogger(__name__)

# Typical bitrates in bits per second, used when the real duration is unknown
BITRATES = {
    "mp3": 128_000,
    "mp4": 192_000,
    "m4a": 192_000,
    "wav": 1_411_000,
    "webm": 128_000,
    "mpeg": 128_000,
    "mpga": 128_000,
}
DEFAULT_BITRATE = 128_000


def estimate_duration_seconds(file_size: int, extension: str) -> int:
    """
    Estimate audio duration from file size and format.

    Args:
        file_size: Size of the file in bytes
        extension: File extension used to pick a typical bitrate

    Returns:
        Estimated duration in whole seconds
    """
    bitrate = BITRATES.get(extension.lower(), DEFAULT_BITRATE)
    return round(max(file_size, 0) * 8 / bitrate)


def probe_duration_seconds(data: bytes) -> Optional[float]:
    """
    Read the real duration from the audio container headers.

    Args:
        data: Complete audio file bytes

    Returns:
        Duration in seconds, or None if the format could not be parsed
    """
    try:
        audio = MutagenFile(io.BytesIO(data))
    except MutagenError as e:
        logger.debug(f"Could not parse audio headers: {e}")
        return None

    if audio is None or getattr(audio, "info", None) is None:
        return None

    length = getattr(audio.info, "length", None)
    if not length or length <= 0:
        return None
    return float(length)
