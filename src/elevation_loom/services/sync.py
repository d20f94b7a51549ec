"""Sync status registry and the boundary object handed to UI code."""

import logging
from dataclasses import dataclass
from datetime import datetime

from elevation_loom.domain.errors import ErrorInfo
from elevation_loom.domain.result import Err, Ok, Result
from elevation_loom.domain.sync import FlushOutcome, SyncReport, SyncState
from elevation_loom.services.storage import WeekStorageService

_logger = logging.getLogger(__name__)


@dataclass
class SyncRegistry:
    """Flushes, inspects and discards pending writes."""

    storage: WeekStorageService
    state: SyncState

    async def trigger(self) -> Result[SyncReport]:
        """Attempt each pending week once.

        Weeks that reach the remote stay settled even when others fail.
        """
        keys = self.state.pending_keys
        if not keys:
            return Ok(SyncReport())

        synced = 0
        discarded = 0
        failures: list[tuple[str, ErrorInfo]] = []
        for key in keys:
            outcome = await self.storage.flush(key)
            if isinstance(outcome, Err):
                _logger.warning("Sync of %s failed: %s", key, outcome.error)
                failures.append((key, outcome.error))
                continue
            if outcome.value is FlushOutcome.SYNCED:
                synced += 1
            else:
                discarded += 1

        if failures:
            details = "; ".join(f"{key}: {error.message}" for key, error in failures)
            return Err(
                ErrorInfo(
                    kind=failures[0][1].kind,
                    message=(
                        f"{len(failures)} of {len(keys)} pending week(s) "
                        f"failed to sync: {details}"
                    ),
                )
            )
        _logger.info("Sync complete: synced=%s discarded=%s", synced, discarded)
        return Ok(SyncReport(synced=synced, discarded=discarded))

    def get_pending_count(self) -> int:
        """Return the number of writes waiting for the remote store."""
        return self.state.pending_count

    async def clear(self) -> None:
        """Forget pending writes without delivering them."""
        if self.state.pending_count:
            _logger.warning(
                "Discarding %s pending write(s) on request", self.state.pending_count
            )
        await self.storage.forget_pending()

    @property
    def last_sync_time(self) -> datetime | None:
        return self.state.last_sync_time


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a user-triggered sync."""

    success: bool
    message: str


@dataclass
class SyncBoundary:
    """The only surface through which UI code drives synchronization."""

    registry: SyncRegistry

    async def trigger(self) -> SyncOutcome:
        result = await self.registry.trigger()
        if isinstance(result, Err):
            return SyncOutcome(success=False, message=result.error.message)
        report = result.value
        if not report.synced and not report.discarded:
            return SyncOutcome(success=True, message="Nothing to sync")
        message = f"Synced {report.synced} week(s)"
        if report.discarded:
            message += f", kept newer remote copy for {report.discarded}"
        return SyncOutcome(success=True, message=message)

    def get_pending_count(self) -> int:
        return self.registry.get_pending_count()

    async def clear(self) -> None:
        await self.registry.clear()

    @property
    def last_sync_time(self) -> datetime | None:
        return self.registry.last_sync_time
