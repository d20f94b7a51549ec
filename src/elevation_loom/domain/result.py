"""Tagged success/failure container used by every fallible storage call."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeGuard, TypeVar

from elevation_loom.domain.errors import ErrorInfo, ErrorKind

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying an error descriptor."""

    error: ErrorInfo

    @property
    def ok(self) -> bool:
        return False


Result = Ok[T] | Err


def err(kind: ErrorKind, message: str) -> Err:
    """Build an ``Err`` from a kind and message."""
    return Err(ErrorInfo(kind=kind, message=message))


def is_ok(result: "Result[T]") -> TypeGuard[Ok[T]]:
    """Return True for ``Ok`` results."""
    return isinstance(result, Ok)


def is_err(result: "Result[T]") -> TypeGuard[Err]:
    """Return True for ``Err`` results."""
    return isinstance(result, Err)


def map_result(result: "Result[T]", func: Callable[[T], U]) -> "Result[U]":
    """Apply ``func`` to an ``Ok`` value; ``Err`` passes through untouched.

    Exceptions raised by ``func`` are not caught.
    """
    if isinstance(result, Err):
        return result
    return Ok(func(result.value))


def chain(result: "Result[T]", func: "Callable[[T], Result[U]]") -> "Result[U]":
    """Feed an ``Ok`` value into a function that itself returns a result."""
    if isinstance(result, Err):
        return result
    return func(result.value)
