"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from elevation_loom.adapters.sqlite_week_cache import SqliteWeekCache
from elevation_loom.adapters.supabase_auth_client import SupabaseAuthProvider
from elevation_loom.adapters.supabase_week_repository import SupabaseWeekRepository
from elevation_loom.config import Settings
from elevation_loom.domain.sync import SyncState
from elevation_loom.services.storage import WeekStorageService
from elevation_loom.services.sync import SyncBoundary, SyncRegistry


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    sync_state: SyncState
    storage_service: WeekStorageService
    sync_registry: SyncRegistry
    sync_boundary: SyncBoundary
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_key
    )
    auth_provider = SupabaseAuthProvider(
        client=supabase_client,
        fixed_user_id=resolved_settings.supabase_user_id,
        timeout_seconds=resolved_settings.remote_timeout_seconds,
    )
    remote = SupabaseWeekRepository(
        client=supabase_client,
        auth=auth_provider,
        table=resolved_settings.weeks_table,
        timeout_seconds=resolved_settings.remote_timeout_seconds,
    )
    cache = SqliteWeekCache.create(
        resolved_settings.cache_db_path,
        max_entries=resolved_settings.cache_max_entries,
    )
    sync_state = SyncState()
    storage_service = WeekStorageService(
        remote=remote,
        cache=cache,
        sync_state=sync_state,
        cache_ttl=timedelta(seconds=resolved_settings.cache_ttl_seconds),
        conflict_tolerance_ms=resolved_settings.conflict_tolerance_ms,
    )
    sync_registry = SyncRegistry(storage=storage_service, state=sync_state)

    async def close_resources() -> None:
        await cache.close()

    return AppContainer(
        settings=resolved_settings,
        sync_state=sync_state,
        storage_service=storage_service,
        sync_registry=sync_registry,
        sync_boundary=SyncBoundary(sync_registry),
        close_resources=close_resources,
    )
