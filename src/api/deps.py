"""FastAPI dependencies for the transcription API."""

from functools import lru_cache
from typing import Any

from fastapi import Depends

from src.config import Settings, get_settings
from src.services.job_store import JobStore, create_job_store
from src.services.orchestrator import TranscriptionOrchestrator, create_orchestrator
from src.services.storage import BlobStore, create_blob_store


def get_settings_dep() -> Settings:
    """Dependency for application settings."""
    return get_settings()


@lru_cache
def get_supabase_client() -> Any:
    """Shared Supabase client for the record and blob stores."""
    from supabase import create_client

    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_key)


@lru_cache
def get_job_store_dep() -> JobStore:
    """Dependency for the job record store."""
    return create_job_store(supabase_client=get_supabase_client())


@lru_cache
def get_blob_store_dep() -> BlobStore:
    """Dependency for the audio blob store."""
    return create_blob_store(supabase_client=get_supabase_client())


def get_orchestrator_dep(
    job_store: JobStore = Depends(get_job_store_dep),
    blob_store: BlobStore = Depends(get_blob_store_dep),
) -> TranscriptionOrchestrator:
    """Dependency for the transcription orchestrator."""
    return create_orchestrator(job_store=job_store, blob_store=blob_store)
