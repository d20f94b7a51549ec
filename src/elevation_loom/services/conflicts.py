"""Timestamp-window conflict detection."""

from datetime import datetime, timedelta

DEFAULT_TOLERANCE_MS = 1000


def has_conflict(
    local_timestamp: datetime,
    remote_timestamp: datetime,
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> bool:
    """Return True when the two timestamps diverge beyond the tolerance."""
    return abs(remote_timestamp - local_timestamp) > timedelta(
        milliseconds=tolerance_ms
    )


def remote_is_newer(
    local_timestamp: datetime,
    remote_timestamp: datetime,
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> bool:
    """Return True when the remote timestamp is ahead beyond the tolerance."""
    return remote_timestamp > local_timestamp and has_conflict(
        local_timestamp, remote_timestamp, tolerance_ms
    )
