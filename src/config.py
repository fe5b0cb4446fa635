"""Application settings from environment variables."""

from functools import lru_cache
from dotenv import load_dotenv

from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings from environment."""

    # API Keys
    openai_api_key: str = ""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    storage_bucket: str = "audio_files"
    jobs_table: str = "transcriptions"
    signed_url_expiry_seconds: int = 3600

    # Configuration
    log_level: str = "INFO"
    max_retry_attempts: int = 3
    base_delay_seconds: float = 1.0
    chunk_max_attempts: int = 1

    # Whisper
    whisper_api_url: str = "https://api.openai.com/v1/audio/transcriptions"
    whisper_model: str = "whisper-1"
    whisper_timeout_seconds: float = 600.0

    # Chunking (bytes)
    max_file_size: int = 25 * MIB
    safety_margin_bytes: int = 2 * MIB
    chunk_overlap_bytes: int = 512 * 1024
    header_size_bytes: int = 1 * MIB
    supported_formats: list[str] = ["mp3", "mp4", "mpeg", "mpga", "m4a", "wav", "webm"]
    header_preserving_formats: list[str] = ["m4a", "mp4"]

    # Format normalization (ffmpeg)
    normalize_enabled: bool = True
    normalize_formats: list[str] = ["m4a", "mp4"]
    ffmpeg_binary: str = "ffmpeg"
    normalized_format: str = "mp3"
    normalized_bitrate: str = "64k"
    normalize_timeout_seconds: float = 900.0

    model_config = {"env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
