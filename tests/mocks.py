"""In-memory stand-ins for Supabase, the speech-to-text engine and ffmpeg."""

from typing import Any, Callable, Dict, List, Optional, Union

from src.services.normalizer import FormatNormalizer, NormalizedAudio
from src.services.whisper import TranscriptionResult
from src.utils.errors import NormalizationError

SUPPORTED_FORMATS = ["mp3", "mp4", "mpeg", "mpga", "m4a", "wav", "webm"]


# ==================== Mock Supabase Client ====================


class MockSupabaseResponse:
    """Mock response from Supabase operations."""

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None) -> None:
        self.data = data or []


class MockSupabaseTable:
    """Mock Supabase table supporting the query chains used by JobStore."""

    def __init__(self, name: str) -> None:
        self._table_name = name
        self._data: Dict[str, Dict[str, Any]] = {}
        self._filters: List[tuple[str, Any]] = []
        self._insert_data: Optional[Dict[str, Any]] = None
        self._update_data: Optional[Dict[str, Any]] = None
        # Every update payload that reached a row, in order
        self.updates: List[Dict[str, Any]] = []
        self.fail_inserts = False
        self.fail_reads = False
        # status value -> number of upcoming updates with that status to reject
        self.fail_updates: Dict[str, int] = {}

    def _reset_query(self) -> None:
        self._filters = []
        self._insert_data = None
        self._update_data = None

    def select(self, columns: str = "*") -> "MockSupabaseTable":
        return self

    def insert(self, data: Dict[str, Any]) -> "MockSupabaseTable":
        self._insert_data = data
        return self

    def update(self, data: Dict[str, Any]) -> "MockSupabaseTable":
        self._update_data = data
        return self

    def eq(self, field: str, value: Any) -> "MockSupabaseTable":
        self._filters.append((field, value))
        return self

    def execute(self) -> MockSupabaseResponse:
        try:
            if self._insert_data is not None:
                return self._execute_insert(self._insert_data)
            if self._update_data is not None:
                return self._execute_update(self._update_data)
            return self._execute_select()
        finally:
            self._reset_query()

    def _execute_insert(self, data: Dict[str, Any]) -> MockSupabaseResponse:
        if self.fail_inserts:
            raise RuntimeError("insert rejected")
        row = dict(data)
        self._data[row["id"]] = row
        return MockSupabaseResponse([dict(row)])

    def _execute_update(self, data: Dict[str, Any]) -> MockSupabaseResponse:
        status = data.get("status")
        if self.fail_updates.get(status, 0) > 0:
            self.fail_updates[status] -= 1
            raise RuntimeError(f"update to {status} rejected")
        updated = []
        for record in self._data.values():
            if self._matches_filters(record):
                record.update(data)
                updated.append(dict(record))
        if updated:
            self.updates.append(dict(data))
        return MockSupabaseResponse(updated)

    def _execute_select(self) -> MockSupabaseResponse:
        if self.fail_reads:
            raise RuntimeError("read rejected")
        return MockSupabaseResponse(
            [dict(r) for r in self._data.values() if self._matches_filters(r)]
        )

    def _matches_filters(self, record: Dict[str, Any]) -> bool:
        return all(record.get(field) == value for field, value in self._filters)


class MockStorageBucket:
    """Mock Supabase storage bucket."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.download_failures = 0
        self.download_calls = 0

    def download(self, path: str) -> bytes:
        self.download_calls += 1
        if self.download_failures > 0:
            self.download_failures -= 1
            raise RuntimeError("storage unavailable")
        if path not in self.files:
            raise RuntimeError(f"Object not found: {path}")
        return self.files[path]

    def upload(self, path: str, file: bytes, file_options: Optional[dict] = None) -> dict:
        self.files[path] = file
        return {"Key": path}

    def create_signed_url(self, path: str, expires_in: int) -> dict:
        if path not in self.files:
            raise RuntimeError(f"Object not found: {path}")
        return {"signedURL": f"https://storage.example.test/{path}?token=signed&expires={expires_in}"}


class MockStorage:
    def __init__(self) -> None:
        self.buckets: Dict[str, MockStorageBucket] = {}

    def from_(self, bucket: str) -> MockStorageBucket:
        return self.buckets.setdefault(bucket, MockStorageBucket())


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self) -> None:
        self._tables: Dict[str, MockSupabaseTable] = {}
        self.storage = MockStorage()

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable(name)
        return self._tables[name]

    def get_all_records(self, table_name: str) -> List[Dict[str, Any]]:
        if table_name in self._tables:
            return list(self._tables[table_name]._data.values())
        return []


# ==================== Engine and Normalizer Fakes ====================


EngineOutcome = Union[TranscriptionResult, Exception]


class FakeEngine:
    """Speech-to-text stand-in returning scripted outcomes by call number."""

    def __init__(
        self,
        outcomes: Optional[Dict[int, EngineOutcome]] = None,
        default: Optional[Callable[[int], EngineOutcome]] = None,
    ) -> None:
        self.outcomes = outcomes or {}
        self.default = default or (lambda n: TranscriptionResult(text=f"text{n}"))
        self.calls: List[tuple[str, bytes]] = []

    async def transcribe(self, audio: bytes, filename: str) -> TranscriptionResult:
        self.calls.append((filename, audio))
        outcome = self.outcomes.get(len(self.calls), None)
        if outcome is None:
            outcome = self.default(len(self.calls))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeNormalizer(FormatNormalizer):
    """Normalizer that replaces ffmpeg with a scripted conversion."""

    def __init__(self, output: Optional[bytes] = None, error: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.output = output
        self.error = error
        self.calls: List[str] = []

    async def normalize(self, data, extension, on_progress=None) -> NormalizedAudio:
        extension = extension.lower()
        if not self.needs_normalization(extension):
            return NormalizedAudio(data=data, extension=extension)
        self.calls.append(extension)
        if on_progress:
            await on_progress(0)
            await on_progress(50)
        if self.error:
            raise NormalizationError(self.error)
        if on_progress:
            await on_progress(100)
        output = self.output if self.output is not None else data[: len(data) // 2]
        return NormalizedAudio(data=output, extension=self.target_format, converted=True)
