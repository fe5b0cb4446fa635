"""FastAPI routes for the transcription API."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.deps import (
    get_blob_store_dep,
    get_job_store_dep,
    get_orchestrator_dep,
    get_settings_dep,
)
from src.config import Settings
from src.models.job import TranscriptionJob
from src.services.audio import estimate_duration_seconds
from src.services.job_store import JobStore
from src.services.orchestrator import TranscriptionOrchestrator
from src.services.storage import BlobStore
from src.utils.errors import (
    JobStoreError,
    StorageError,
    SubmissionError,
    TranscriberError,
    TranscriptionEngineError,
)
from src.utils.formats import file_stem, validate_extension

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    error_type: str
    errors: Optional[List[Dict[str, Any]]] = None


# ==================== Exception Handlers ====================


REQUIRED_FILE_FIELDS = {"filePath", "fileName", "file_path", "file_name"}
# Error types meaning a required file field is absent or blank
BLANK_ERROR_TYPES = {"missing", "string_too_short", "value_error"}


def validation_message(errors: Sequence[Dict[str, Any]]) -> str:
    """Build a client-facing message from request validation errors."""
    for error in errors:
        loc = tuple(error.get("loc", ()))
        if loc == ("body",) and error.get("type") == "missing":
            return "File path and name are required"
        if (
            len(loc) == 2
            and loc[0] == "body"
            and loc[1] in REQUIRED_FILE_FIELDS
            and error.get("type") in BLANK_ERROR_TYPES
        ):
            return "File path and name are required"

    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(
        str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
    )
    msg = first.get("msg", "invalid value")
    return f"Invalid {field}: {msg}" if field else f"Invalid request: {msg}"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    return JSONResponse(
        status_code=400,
        content={
            "error": validation_message(exc.errors()),
            "error_type": "ValidationError",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def transcriber_exception_handler(request: Request, exc: TranscriberError) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = 500

    if isinstance(exc, SubmissionError):
        status_code = 400
    elif isinstance(exc, (StorageError, TranscriptionEngineError)):
        status_code = 502  # Bad Gateway for external service errors

    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "error_type": type(exc).__name__},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "error_type": "HTTPException"},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_type": "InternalError"},
    )


# ==================== Request/Response Models ====================


class TranscriptionRequest(BaseModel):
    """Request model for the transcription submission endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath", min_length=1, description="Blob path of the upload")
    file_name: str = Field(alias="fileName", min_length=1, description="Original file name")
    file_size: int = Field(alias="fileSize", ge=0, description="File size in bytes")
    custom_title: Optional[str] = Field(default=None, alias="customTitle")

    @field_validator("file_path", "file_name")
    @classmethod
    def not_whitespace(cls, v: str) -> str:
        """Validate that field is not only whitespace."""
        if not v.strip():
            raise ValueError("field cannot be only whitespace")
        return v.strip()


class TranscriptionResponse(BaseModel):
    """Response model for the transcription submission endpoint."""

    id: str
    message: str


class AudioUrlResponse(BaseModel):
    """Response model for the signed audio URL endpoint."""

    url: str
    expires_in: int


# ==================== Endpoints ====================


@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def submit_transcription(
    request: TranscriptionRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings_dep),
    store: JobStore = Depends(get_job_store_dep),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator_dep),
) -> TranscriptionResponse:
    """
    Start transcribing an uploaded audio file.

    Validates the file format, creates the job record in processing state
    and schedules the pipeline in the background. Returns immediately with
    the job id; progress and results are read from the status endpoint.
    """
    # Raises UnsupportedFormatError before any record exists
    extension = validate_extension(request.file_name, settings.supported_formats)

    job = TranscriptionJob(
        file_name=request.file_name,
        file_path=request.file_path,
        file_size=request.file_size,
        custom_title=(request.custom_title or "").strip() or file_stem(request.file_name),
        status="processing",
        audio_duration=estimate_duration_seconds(request.file_size, extension),
    )

    try:
        await store.create_job(job)
    except JobStoreError as e:
        logger.error(f"Failed to create job: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(orchestrator.run, job)
    logger.info(f"Scheduled transcription job {job.id} for {request.file_name}")

    return TranscriptionResponse(
        id=job.id,
        message="Transcription processing started in background",
    )


@router.get("/transcriptions/{job_id}", response_model=TranscriptionJob)
async def get_transcription(
    job_id: str,
    store: JobStore = Depends(get_job_store_dep),
) -> TranscriptionJob:
    """
    Get the current state of a transcription job.

    Safe to poll at any rate; reading never changes the record.
    """
    job = await store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Transcription not found: {job_id}")
    return job


@router.get("/transcriptions/{job_id}/audio-url", response_model=AudioUrlResponse)
async def get_audio_url(
    job_id: str,
    expires_in: Optional[int] = Query(default=None, ge=60, le=7 * 24 * 3600),
    settings: Settings = Depends(get_settings_dep),
    store: JobStore = Depends(get_job_store_dep),
    blobs: BlobStore = Depends(get_blob_store_dep),
) -> AudioUrlResponse:
    """Get a signed URL for playing back the source audio of a job."""
    job = await store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Transcription not found: {job_id}")

    ttl = expires_in or settings.signed_url_expiry_seconds
    url = await blobs.create_signed_url(job.file_path, ttl)
    return AudioUrlResponse(url=url, expires_in=ttl)
