"""Speech-to-text adapter for the OpenAI Whisper transcription endpoint."""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from src.models.job import TranscriptSegment
from src.utils.errors import TranscriptionEngineError, WhisperAPIError
from src.utils.formats import file_extension, mime_type

logger = logging.getLogger(__name__)

# OpenAI Whisper API endpoint
WHISPER_API_URL = "https://api.openai.com/v1/audio/transcriptions"


class TranscriptionResult(BaseModel):
    """Engine output for one audio clip."""

    text: str
    segments: Optional[list[TranscriptSegment]] = None
    duration: Optional[float] = None
    language: Optional[str] = None


class WhisperClient:
    """Sends single audio clips to the Whisper API. Performs no retries."""

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        api_url: str = WHISPER_API_URL,
        timeout: float = 600.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the WhisperClient.

        Args:
            api_key: OpenAI API key
            model: Transcription model identifier
            api_url: Transcription endpoint URL
            timeout: Per-request timeout in seconds
            http_client: Shared httpx client (optional, one is created per call otherwise)
        """
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self._http_client = http_client

    def _build_form(self) -> dict[str, str]:
        return {"model": self.model, "response_format": "verbose_json"}

    async def transcribe(self, audio: bytes, filename: str) -> TranscriptionResult:
        """
        Transcribe one audio clip.

        Args:
            audio: Clip bytes, already within the engine's size limit
            filename: Name with an extension the engine accepts

        Returns:
            TranscriptionResult for this clip only

        Raises:
            WhisperAPIError: If the API returns a non-2xx response
            TranscriptionEngineError: On timeouts, transport errors or bad payloads
        """
        logger.debug(f"Sending {filename} ({len(audio)} bytes) to {self.model}")

        files = {"file": (filename, audio, mime_type(file_extension(filename)))}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.api_url,
                    data=self._build_form(),
                    files=files,
                    headers=headers,
                    timeout=self.timeout,
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.api_url,
                        data=self._build_form(),
                        files=files,
                        headers=headers,
                        timeout=self.timeout,
                    )
        except httpx.TimeoutException as e:
            raise TranscriptionEngineError(
                f"Transcription request for {filename} timed out after {self.timeout:.0f}s: {e}"
            )
        except httpx.HTTPError as e:
            raise TranscriptionEngineError(f"HTTP error during transcription of {filename}: {e}")

        if not response.is_success:
            logger.error(f"OpenAI API error for {filename}: {response.text}")
            raise WhisperAPIError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionEngineError(f"Invalid JSON from transcription API: {e}")

        return self._parse_result(payload)

    def _parse_result(self, payload: Any) -> TranscriptionResult:
        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise TranscriptionEngineError("Transcription response has no text field")

        segments: Optional[list[TranscriptSegment]] = None
        raw_segments = payload.get("segments")
        if isinstance(raw_segments, list):
            try:
                segments = [
                    TranscriptSegment(
                        start=float(s["start"]),
                        end=float(s["end"]),
                        text=str(s.get("text", "")).strip(),
                    )
                    for s in raw_segments
                ]
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed segments in transcription response: {e}")
                segments = None

        duration = payload.get("duration")
        try:
            duration = float(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration = None

        return TranscriptionResult(
            text=payload["text"],
            segments=segments,
            duration=duration,
            language=payload.get("language"),
        )


def create_whisper_client(http_client: Optional[httpx.AsyncClient] = None) -> WhisperClient:
    """
    Create a WhisperClient using application settings.

    Args:
        http_client: Optional shared httpx client

    Returns:
        Configured WhisperClient instance
    """
    from src.config import get_settings

    settings = get_settings()
    return WhisperClient(
        api_key=settings.openai_api_key,
        model=settings.whisper_model,
        api_url=settings.whisper_api_url,
        timeout=settings.whisper_timeout_seconds,
        http_client=http_client,
    )
