"""Week persistence across the remote store and the local cache.

The remote store is the record of truth. The local cache serves reads while
fresh, absorbs writes while the remote is unreachable, and is refreshed after
every successful remote read or write. Backend failures come back as ``Err``;
a save only reports ``Ok`` when at least one backend holds the data.

Saves for the same week are not serialized here. Callers that need ordering
must await each save before issuing the next one.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from elevation_loom.domain.errors import ErrorInfo, ErrorKind
from elevation_loom.domain.result import Err, Ok, Result, err, map_result
from elevation_loom.domain.sync import FlushOutcome, SyncState
from elevation_loom.domain.weeks import (
    CACHE_TTL,
    ISO_YEAR_MAX,
    ISO_YEAR_MIN,
    CacheEntry,
    DailyLog,
    LoadedWeek,
    WeekRecord,
    iso_week_exists,
    iso_week_of,
    to_millis,
    week_key,
)
from elevation_loom.services.conflicts import (
    DEFAULT_TOLERANCE_MS,
    has_conflict,
    remote_is_newer,
)
from elevation_loom.services.diff import is_identical

_logger = logging.getLogger(__name__)

_UNREACHABLE = (ErrorKind.NETWORK, ErrorKind.AUTHENTICATION)


class LocalCache(Protocol):
    """On-device keyed store of cache entries."""

    async def get(self, key: str) -> Result[CacheEntry | None]:
        """Return the entry for a key, or ``Ok(None)`` when absent."""

    async def put(self, key: str, entry: CacheEntry) -> Result[None]:
        """Store an entry under a key."""

    async def delete(self, key: str) -> Result[None]:
        """Remove the entry for a key."""

    async def list_entries(self) -> Result[list[CacheEntry]]:
        """Return every cached entry."""

    async def clear(self) -> Result[None]:
        """Remove every cached entry."""


class RemoteStore(Protocol):
    """Authoritative, identity-scoped week store."""

    async def get(self, key: str) -> Result[WeekRecord | None]:
        """Return the record for a key, or ``Ok(None)`` when absent."""

    async def put(self, key: str, record: WeekRecord) -> Result[None]:
        """Create or replace the record for a key."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class WeekStorageService:
    """Save and load entry points for week records."""

    remote: RemoteStore
    cache: LocalCache
    sync_state: SyncState
    cache_ttl: timedelta = CACHE_TTL
    conflict_tolerance_ms: int = DEFAULT_TOLERANCE_MS
    clock: Callable[[], datetime] = _utc_now

    async def save(
        self, record: WeekRecord, expected_last_modified: datetime | None = None
    ) -> Result[None]:
        """Persist a week, remote first, falling back to the cache.

        ``expected_last_modified`` is the timestamp of the version the edit
        was based on; when the remote copy diverges from it beyond the
        tolerance the remote copy wins and a conflict error is returned.
        """
        key = record.key
        if expected_last_modified is not None:
            expected_last_modified = to_millis(expected_last_modified)
        cached = await self.cache.get(key)
        if isinstance(cached, Err):
            _logger.warning(
                "Cache read before save failed for %s: %s", key, cached.error
            )
        elif cached.value is not None and is_identical(record, cached.value.payload):
            _logger.debug("Week %s unchanged, skipping write", key)
            return Ok(None)

        if expected_last_modified is not None:
            conflict = await self._detect_conflict(record, expected_last_modified)
            if conflict is not None:
                return conflict

        pushed = await self.remote.put(key, record)
        if isinstance(pushed, Ok):
            await self._write_through(key, record)
            self.sync_state.mark_synced(key, self.clock())
            return Ok(None)
        return await self._save_to_cache_only(key, record, pushed.error)

    async def load(
        self, iso_year: int, iso_week: int, refresh: bool = False
    ) -> Result[LoadedWeek]:
        """Read a week through the cache."""
        if not (
            ISO_YEAR_MIN <= iso_year <= ISO_YEAR_MAX
            and iso_week_exists(iso_year, iso_week)
        ):
            return err(ErrorKind.VALIDATION, f"No ISO week {iso_week} in {iso_year}")
        key = week_key(iso_year, iso_week)
        now = self.clock()
        entry: CacheEntry | None = None
        cached = await self.cache.get(key)
        if isinstance(cached, Err):
            _logger.warning("Cache read failed for %s: %s", key, cached.error)
        else:
            entry = cached.value

        if entry is not None and (entry.pending or self.sync_state.is_pending(key)):
            # The cache holds a write the remote has not seen yet.
            return Ok(LoadedWeek(record=entry.payload, stale=False, source="cache"))
        fresh = entry is not None and not entry.is_stale(now, self.cache_ttl)
        if entry is not None and fresh and not refresh:
            return Ok(LoadedWeek(record=entry.payload, stale=False, source="cache"))

        fetched = await self.remote.get(key)
        if isinstance(fetched, Err):
            if entry is not None:
                _logger.warning(
                    "Remote load failed for %s, serving cached copy: %s",
                    key,
                    fetched.error,
                )
                return Ok(LoadedWeek(record=entry.payload, stale=True, source="cache"))
            return Err(
                ErrorInfo(
                    kind=fetched.error.kind,
                    message=f"Could not load week {key}: {fetched.error.message}",
                )
            )

        remote_record = fetched.value
        if remote_record is None:
            if entry is not None:
                return Ok(
                    LoadedWeek(
                        record=entry.payload,
                        stale=entry.is_stale(now, self.cache_ttl),
                        source="cache",
                    )
                )
            return Ok(
                LoadedWeek(
                    record=WeekRecord.empty(iso_year, iso_week),
                    stale=False,
                    source="empty",
                )
            )

        await self._write_through(key, remote_record)
        return Ok(LoadedWeek(record=remote_record, stale=False, source="remote"))

    async def save_day_log(self, entry: DailyLog) -> Result[None]:
        """Replace or add one day's log within its ISO week."""
        if not _valid_amount(entry.value):
            return err(ErrorKind.VALIDATION, f"Invalid value for {entry.date}")
        iso_year, iso_week = iso_week_of(entry.date)
        return await self._edit(
            iso_year, iso_week, lambda week: week.with_day_log(entry, self.clock())
        )

    async def save_week_target(
        self, iso_year: int, iso_week: int, value: float
    ) -> Result[None]:
        """Set the target of a week, keeping its unit and logs."""
        if not _valid_amount(value):
            return err(ErrorKind.VALIDATION, f"Invalid target value: {value}")
        return await self._edit(
            iso_year, iso_week, lambda week: week.with_target(value, self.clock())
        )

    async def list_cached_weeks(self) -> Result[list[WeekRecord]]:
        """Return every week currently held by the cache."""
        listed = await self.cache.list_entries()
        return map_result(listed, lambda entries: [item.payload for item in entries])

    async def clear_cache(self) -> Result[None]:
        """Drop all cached weeks unless some are still waiting for the remote."""
        pending = self.sync_state.pending_count
        if pending:
            return err(
                ErrorKind.STORAGE,
                f"Cannot clear cache: {pending} write(s) are pending remote sync",
            )
        return await self.cache.clear()

    async def flush(self, key: str) -> Result[FlushOutcome]:
        """Push the cached copy of a pending week to the remote store.

        The cached copy is pushed as is; comparing it against the cache
        would always suppress it.
        """
        writes = self.sync_state.pending_writes.get(key, 0)
        cached = await self.cache.get(key)
        if isinstance(cached, Err):
            return cached
        if cached.value is None:
            _logger.error("Pending week %s is missing from the cache", key)
            self.sync_state.discard(key)
            return Ok(FlushOutcome.DISCARDED)

        record = cached.value.payload
        fetched = await self.remote.get(key)
        if isinstance(fetched, Err):
            return fetched
        remote_record = fetched.value
        if remote_record is not None and remote_is_newer(
            record.last_modified,
            remote_record.last_modified,
            self.conflict_tolerance_ms,
        ):
            _logger.warning(
                "Remote copy of %s is newer, discarding pending local write", key
            )
            await self._write_through(key, remote_record)
            self.sync_state.discard(key)
            return Ok(FlushOutcome.DISCARDED)

        pushed = await self.remote.put(key, record)
        if isinstance(pushed, Err):
            return pushed
        self.sync_state.mark_synced(key, self.clock(), writes=writes)
        if not self.sync_state.is_pending(key):
            await self._settle_cached(key, record)
        return Ok(FlushOutcome.SYNCED)

    async def restore_pending(self) -> Result[int]:
        """Re-register pending writes recorded in the cache by an earlier run.

        Per-write counts are not persisted, so each flagged week counts once.
        """
        listed = await self.cache.list_entries()
        if isinstance(listed, Err):
            return listed
        restored = 0
        for entry in listed.value:
            key = entry.payload.key
            if entry.pending and not self.sync_state.is_pending(key):
                self.sync_state.mark_pending(key)
                restored += 1
        if restored:
            _logger.warning("Restored %s pending week(s) from the cache", restored)
        return Ok(restored)

    async def forget_pending(self) -> None:
        """Drop pending accounting and unflag the cached copies."""
        for key in self.sync_state.pending_keys:
            cached = await self.cache.get(key)
            if isinstance(cached, Err):
                _logger.warning(
                    "Could not unflag pending week %s: %s", key, cached.error
                )
            elif cached.value is not None and cached.value.pending:
                await self._put_entry(key, replace(cached.value, pending=False))
        self.sync_state.reset()

    async def _edit(
        self,
        iso_year: int,
        iso_week: int,
        change: Callable[[WeekRecord], WeekRecord],
    ) -> Result[None]:
        """Load a week, apply ``change`` and save the result.

        When the remote is unreachable and nothing is cached, the change is
        applied to an empty week and kept in the cache until the next sync.
        """
        loaded = await self.load(iso_year, iso_week)
        if isinstance(loaded, Ok):
            return await self.save(change(loaded.value.record))
        if loaded.error.kind not in _UNREACHABLE:
            return loaded
        updated = change(WeekRecord.empty(iso_year, iso_week))
        return await self._save_to_cache_only(updated.key, updated, loaded.error)

    async def _detect_conflict(
        self, record: WeekRecord, expected_last_modified: datetime
    ) -> Err | None:
        key = record.key
        fetched = await self.remote.get(key)
        if isinstance(fetched, Err) or fetched.value is None:
            return None
        remote_record = fetched.value
        if not has_conflict(
            expected_last_modified,
            remote_record.last_modified,
            self.conflict_tolerance_ms,
        ):
            return None
        _logger.warning(
            "Week %s was modified elsewhere at %s, keeping remote copy",
            key,
            remote_record.last_modified.isoformat(),
        )
        await self._write_through(key, remote_record)
        return Err(
            ErrorInfo(
                kind=ErrorKind.CONFLICT,
                message=(
                    f"Week {key} was changed elsewhere; your edit was not saved "
                    "and the latest version has been loaded."
                ),
                remote=remote_record,
            )
        )

    async def _write_through(self, key: str, record: WeekRecord) -> None:
        """Refresh the cache after the remote accepted or returned a record."""
        await self._put_entry(key, CacheEntry(payload=record, cached_at=self.clock()))

    async def _settle_cached(self, key: str, record: WeekRecord) -> None:
        """Clear the pending flag if the cache still holds the pushed record."""
        cached = await self.cache.get(key)
        if isinstance(cached, Err):
            _logger.warning("Could not settle cached week %s: %s", key, cached.error)
            return
        entry = cached.value
        if entry is not None and entry.pending and is_identical(record, entry.payload):
            await self._put_entry(key, replace(entry, pending=False))

    async def _put_entry(self, key: str, entry: CacheEntry) -> None:
        stored = await self.cache.put(key, entry)
        if isinstance(stored, Err):
            _logger.warning("Cache write-through failed for %s: %s", key, stored.error)

    async def _save_to_cache_only(
        self, key: str, record: WeekRecord, remote_error: ErrorInfo
    ) -> Result[None]:
        _logger.warning(
            "Supabase save failed for %s, falling back to cache: %s", key, remote_error
        )
        stored = await self.cache.put(
            key, CacheEntry(payload=record, cached_at=self.clock(), pending=True)
        )
        if isinstance(stored, Ok):
            self.sync_state.mark_pending(key)
            _logger.warning("Week %s saved to cache only, pending remote sync", key)
            return Ok(None)
        _logger.error(
            "Both Supabase and cache saves failed for %s: %s / %s",
            key,
            remote_error,
            stored.error,
        )
        return err(
            ErrorKind.DOUBLE_FAILURE,
            f"Failed to persist week {key}: Supabase save failed "
            f"({remote_error.message}) and cache fallback also failed "
            f"({stored.error.message}). Your changes could not be saved.",
        )


def _valid_amount(value: float) -> bool:
    return isinstance(value, int | float) and math.isfinite(value) and value >= 0
