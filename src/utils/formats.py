"""File name helpers for audio formats."""

from typing import Iterable

from src.utils.errors import UnsupportedFormatError

MIME_TYPES = {
    "mp3": "audio/mpeg",
    "mpeg": "audio/mpeg",
    "mpga": "audio/mpeg",
    "mp4": "audio/mp4",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
    "webm": "audio/webm",
}


def file_extension(file_name: str) -> str:
    """Return the lowercased extension of a file name, or "" if it has none."""
    name = (file_name or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def file_stem(file_name: str) -> str:
    """Return the file name without its last extension."""
    name = (file_name or "").strip()
    if "." not in name:
        return name
    return name.rsplit(".", 1)[0]


def mime_type(extension: str) -> str:
    return MIME_TYPES.get(extension.lower(), "application/octet-stream")


def validate_extension(file_name: str, supported: Iterable[str]) -> str:
    """
    Check a file name against the supported formats.

    Args:
        file_name: Name of the uploaded file
        supported: Allowed extensions (without dots)

    Returns:
        The normalized extension

    Raises:
        UnsupportedFormatError: If the extension is missing or not supported
    """
    allowed = [ext.lower() for ext in supported]
    extension = file_extension(file_name)
    if not extension or extension not in allowed:
        raise UnsupportedFormatError(extension, allowed)
    return extension
