"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from elevation_loom.config import Settings
from elevation_loom.containers import AppContainer
from elevation_loom.domain.errors import ErrorInfo, ErrorKind
from elevation_loom.domain.result import Err, Ok, Result
from elevation_loom.domain.sync import SyncState
from elevation_loom.domain.weeks import CacheEntry, DailyLog, Target, WeekRecord
from elevation_loom.services.storage import LocalCache, RemoteStore, WeekStorageService
from elevation_loom.services.sync import SyncBoundary, SyncRegistry

START = datetime(2026, 2, 10, 9, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced clock."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@dataclass
class InMemoryLocalCache(LocalCache):
    """In-memory local cache with switchable failures."""

    entries: dict[str, CacheEntry] = field(default_factory=dict)
    read_error: ErrorInfo | None = None
    write_error: ErrorInfo | None = None
    puts: list[str] = field(default_factory=list)

    async def get(self, key: str) -> Result[CacheEntry | None]:
        if self.read_error:
            return Err(self.read_error)
        return Ok(self.entries.get(key))

    async def put(self, key: str, entry: CacheEntry) -> Result[None]:
        if self.write_error:
            return Err(self.write_error)
        self.puts.append(key)
        self.entries[key] = entry
        return Ok(None)

    async def delete(self, key: str) -> Result[None]:
        self.entries.pop(key, None)
        return Ok(None)

    async def list_entries(self) -> Result[list[CacheEntry]]:
        if self.read_error:
            return Err(self.read_error)
        return Ok(list(self.entries.values()))

    async def clear(self) -> Result[None]:
        self.entries.clear()
        return Ok(None)


@dataclass
class InMemoryRemoteStore(RemoteStore):
    """In-memory remote store that can be taken offline."""

    records: dict[str, WeekRecord] = field(default_factory=dict)
    offline: bool = False
    failing_keys: set[str] = field(default_factory=set)
    gets: list[str] = field(default_factory=list)
    puts: list[str] = field(default_factory=list)

    async def get(self, key: str) -> Result[WeekRecord | None]:
        self.gets.append(key)
        if self.offline or key in self.failing_keys:
            return Err(ErrorInfo(kind=ErrorKind.NETWORK, message="Supabase offline"))
        return Ok(self.records.get(key))

    async def put(self, key: str, record: WeekRecord) -> Result[None]:
        if self.offline or key in self.failing_keys:
            return Err(ErrorInfo(kind=ErrorKind.NETWORK, message="Supabase offline"))
        self.puts.append(key)
        self.records[key] = record
        return Ok(None)


QUOTA_EXCEEDED = ErrorInfo(kind=ErrorKind.QUOTA, message="cache quota exceeded")


def make_week(
    value: float = 5000,
    logs: tuple[DailyLog, ...] = (DailyLog(date="2026-02-10", value=800),),
    last_modified: datetime = START,
) -> WeekRecord:
    return WeekRecord(
        iso_year=2026,
        iso_week=7,
        target=Target(value=value, unit="m"),
        daily_logs=logs,
        last_modified=last_modified,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def sync_state() -> SyncState:
    return SyncState()


@pytest.fixture
def storage_service(
    remote: InMemoryRemoteStore,
    cache: InMemoryLocalCache,
    sync_state: SyncState,
    clock: FakeClock,
) -> WeekStorageService:
    return WeekStorageService(
        remote=remote, cache=cache, sync_state=sync_state, clock=clock
    )


@pytest.fixture
def sync_registry(
    storage_service: WeekStorageService, sync_state: SyncState
) -> SyncRegistry:
    return SyncRegistry(storage=storage_service, state=sync_state)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="test.anon.key",
        cache_db_path=str(tmp_path / "cache.sqlite3"),
    )


@pytest.fixture
def container(
    settings: Settings,
    storage_service: WeekStorageService,
    sync_registry: SyncRegistry,
    sync_state: SyncState,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        sync_state=sync_state,
        storage_service=storage_service,
        sync_registry=sync_registry,
        sync_boundary=SyncBoundary(sync_registry),
        close_resources=close_resources,
    )
