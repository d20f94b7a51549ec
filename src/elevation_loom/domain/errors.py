"""Error descriptors for storage and sync failures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from elevation_loom.domain.weeks import WeekRecord


class ErrorKind(StrEnum):
    """Failure categories surfaced through ``Err`` results."""

    AUTHENTICATION = "authentication"
    NETWORK = "network"
    QUOTA = "quota"
    CONFLICT = "conflict"
    SERIALIZATION = "serialization"
    DOUBLE_FAILURE = "double_failure"
    STORAGE = "storage"
    VALIDATION = "validation"


@dataclass(frozen=True)
class ErrorInfo:
    """Describes why an operation failed.

    ``remote`` is only set for conflicts and holds the record that won.
    """

    kind: ErrorKind
    message: str
    remote: WeekRecord | None = None

    def __str__(self) -> str:
        return self.message


class StorageError(Exception):
    """Base exception raised inside adapters before conversion to ``Err``."""

    kind = ErrorKind.STORAGE

    def to_error_info(self) -> ErrorInfo:
        """Return the error descriptor for this exception."""
        return ErrorInfo(kind=self.kind, message=str(self))


class AuthenticationError(StorageError):
    """No user identity could be established."""

    kind = ErrorKind.AUTHENTICATION


class NetworkError(StorageError):
    """The remote store was unreachable or timed out."""

    kind = ErrorKind.NETWORK


class QuotaError(StorageError):
    """The local store ran out of capacity."""

    kind = ErrorKind.QUOTA


class SerializationError(StorageError):
    """A stored payload could not be decoded."""

    kind = ErrorKind.SERIALIZATION
