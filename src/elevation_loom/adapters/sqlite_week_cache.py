"""SQLite-backed on-device cache for week records."""

import asyncio
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path

from elevation_loom.domain.errors import (
    ErrorInfo,
    ErrorKind,
    QuotaError,
    SerializationError,
)
from elevation_loom.domain.result import Err, Ok, Result
from elevation_loom.domain.weeks import (
    CacheEntry,
    parse_instant,
    record_from_document,
    record_to_document,
)
from elevation_loom.services.storage import LocalCache

_logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS week_cache (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    cached_at TEXT NOT NULL,
    pending INTEGER NOT NULL DEFAULT 0
)
"""


@dataclass
class SqliteWeekCache(LocalCache):
    """Local cache storing one serialized entry and its pending flag per week key."""

    connection: sqlite3.Connection
    max_entries: int | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def create(cls, db_path: str, max_entries: int | None = None) -> "SqliteWeekCache":
        """Open (or create) the cache database at ``db_path``."""
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(db_path, check_same_thread=False)
        connection.execute(_SCHEMA)
        columns = {
            row[1] for row in connection.execute("PRAGMA table_info(week_cache)")
        }
        if "pending" not in columns:
            connection.execute(
                "ALTER TABLE week_cache ADD COLUMN pending INTEGER NOT NULL DEFAULT 0"
            )
        connection.commit()
        _logger.info("Week cache opened: %s", db_path)
        return cls(connection=connection, max_entries=max_entries)

    async def get(self, key: str) -> Result[CacheEntry | None]:
        """Return the cached entry for a key, or ``Ok(None)`` when absent."""
        try:
            row = await asyncio.to_thread(self._select_one, key)
        except sqlite3.Error as exc:
            return Err(_sqlite_error(exc, f"Cache read failed for {key}"))
        if row is None:
            return Ok(None)
        try:
            return Ok(_entry_from_row(row))
        except SerializationError as exc:
            return Err(exc.to_error_info())

    async def put(self, key: str, entry: CacheEntry) -> Result[None]:
        """Store an entry, replacing any previous one for the key."""
        try:
            payload = json.dumps(record_to_document(entry.payload))
        except (TypeError, ValueError) as exc:
            return Err(
                ErrorInfo(
                    kind=ErrorKind.SERIALIZATION,
                    message=f"Could not encode week {key}: {exc}",
                )
            )
        cached_at = entry.cached_at.isoformat(timespec="milliseconds")
        try:
            await asyncio.to_thread(
                self._upsert, key, payload, cached_at, int(entry.pending)
            )
        except QuotaError as exc:
            return Err(exc.to_error_info())
        except sqlite3.Error as exc:
            return Err(_sqlite_error(exc, f"Cache write failed for {key}"))
        return Ok(None)

    async def delete(self, key: str) -> Result[None]:
        """Remove the entry for a key; deleting a missing key is not an error."""
        try:
            await asyncio.to_thread(
                self._write, "DELETE FROM week_cache WHERE key = ?", (key,)
            )
        except sqlite3.Error as exc:
            return Err(_sqlite_error(exc, f"Cache delete failed for {key}"))
        return Ok(None)

    async def list_entries(self) -> Result[list[CacheEntry]]:
        """Return all readable entries; unreadable rows are skipped."""
        try:
            rows = await asyncio.to_thread(self._select_all)
        except sqlite3.Error as exc:
            return Err(_sqlite_error(exc, "Cache listing failed"))
        entries: list[CacheEntry] = []
        for row in rows:
            try:
                entries.append(_entry_from_row(row))
            except SerializationError as exc:
                _logger.warning("Skipping unreadable cache row %s: %s", row[0], exc)
        return Ok(entries)

    async def clear(self) -> Result[None]:
        """Remove every entry."""
        try:
            await asyncio.to_thread(self._write, "DELETE FROM week_cache", ())
        except sqlite3.Error as exc:
            return Err(_sqlite_error(exc, "Cache clear failed"))
        return Ok(None)

    async def close(self) -> None:
        """Close the underlying database connection."""
        with self._lock:
            self.connection.close()

    def _select_one(self, key: str) -> tuple[str, str, str, int] | None:
        with self._lock:
            return self.connection.execute(
                "SELECT key, payload, cached_at, pending FROM week_cache "
                "WHERE key = ?",
                (key,),
            ).fetchone()

    def _select_all(self) -> list[tuple[str, str, str, int]]:
        with self._lock:
            return self.connection.execute(
                "SELECT key, payload, cached_at, pending FROM week_cache ORDER BY key"
            ).fetchall()

    def _upsert(self, key: str, payload: str, cached_at: str, pending: int) -> None:
        with self._lock:
            if self.max_entries is not None:
                exists = self.connection.execute(
                    "SELECT 1 FROM week_cache WHERE key = ?", (key,)
                ).fetchone()
                (count,) = self.connection.execute(
                    "SELECT COUNT(*) FROM week_cache"
                ).fetchone()
                if exists is None and count >= self.max_entries:
                    raise QuotaError(
                        f"Cache quota exceeded ({self.max_entries} weeks)"
                    )
            self.connection.execute(
                "INSERT INTO week_cache (key, payload, cached_at, pending) "
                "VALUES (?, ?, ?, ?) ON CONFLICT(key) DO UPDATE SET "
                "payload = excluded.payload, cached_at = excluded.cached_at, "
                "pending = excluded.pending",
                (key, payload, cached_at, pending),
            )
            self.connection.commit()

    def _write(self, statement: str, params: tuple[object, ...]) -> None:
        with self._lock:
            self.connection.execute(statement, params)
            self.connection.commit()


def _entry_from_row(row: tuple[str, str, str, int]) -> CacheEntry:
    key, payload, cached_at, pending = row
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise SerializationError(f"Cached week {key} is not valid JSON") from exc
    return CacheEntry(
        payload=record_from_document(document),
        cached_at=parse_instant(cached_at),
        pending=bool(pending),
    )


def _sqlite_error(exc: sqlite3.Error, context: str) -> ErrorInfo:
    """Map a SQLite error to a quota or generic storage error."""
    if getattr(exc, "sqlite_errorcode", None) == sqlite3.SQLITE_FULL or (
        "full" in str(exc).lower()
    ):
        return ErrorInfo(kind=ErrorKind.QUOTA, message=f"{context}: {exc}")
    return ErrorInfo(kind=ErrorKind.STORAGE, message=f"{context}: {exc}")
