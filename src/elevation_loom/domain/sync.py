"""Sync bookkeeping shared by the storage service and the sync registry."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class FlushOutcome(StrEnum):
    """What happened to one pending week during a flush."""

    SYNCED = "synced"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class SyncReport:
    """Counts produced by a flush of pending writes."""

    synced: int = 0
    discarded: int = 0


@dataclass
class SyncState:
    """Tracks writes accepted locally but not yet confirmed remotely.

    Starts empty: no last sync time and zero pending writes. One instance is
    built per container and passed to whoever needs it.
    """

    last_sync_time: datetime | None = None
    pending_writes: dict[str, int] = field(default_factory=dict)

    @property
    def pending_count(self) -> int:
        return sum(self.pending_writes.values())

    @property
    def pending_keys(self) -> list[str]:
        return list(self.pending_writes)

    def is_pending(self, key: str) -> bool:
        return key in self.pending_writes

    def mark_pending(self, key: str) -> None:
        """Record one more cache-only write for ``key``."""
        self.pending_writes[key] = self.pending_writes.get(key, 0) + 1

    def mark_synced(
        self, key: str, synced_at: datetime, writes: int | None = None
    ) -> None:
        """Settle pending writes for ``key`` and stamp the sync time.

        With ``writes`` only that many are settled, so writes recorded while
        a flush was in flight stay pending.
        """
        self.last_sync_time = synced_at
        if writes is None:
            self.pending_writes.pop(key, None)
            return
        remaining = self.pending_writes.get(key, 0) - writes
        if remaining > 0:
            self.pending_writes[key] = remaining
        else:
            self.pending_writes.pop(key, None)

    def discard(self, key: str) -> None:
        self.pending_writes.pop(key, None)

    def reset(self) -> None:
        """Forget all pending writes without delivering them."""
        self.pending_writes.clear()
