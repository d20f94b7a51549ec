"""Domain models for weekly training records."""

import math
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta

from elevation_loom.domain.errors import SerializationError

ISO_YEAR_MIN = 2000
ISO_YEAR_MAX = 2100
ISO_WEEK_MIN = 1
ISO_WEEK_MAX = 53
DEFAULT_UNIT = "m"
EPOCH_SENTINEL = datetime(1970, 1, 1, tzinfo=UTC)
CACHE_TTL = timedelta(minutes=5)


def week_key(iso_year: int, iso_week: int) -> str:
    """Return the composite storage key, e.g. ``2026-W07``."""
    return f"{iso_year}-W{iso_week:02d}"


def iso_week_exists(iso_year: int, iso_week: int) -> bool:
    """Return True when the ISO calendar of ``iso_year`` has week ``iso_week``."""
    try:
        date.fromisocalendar(iso_year, iso_week, 1)
    except ValueError:
        return False
    return True


def to_millis(value: datetime) -> datetime:
    """Normalize an instant to an aware UTC datetime with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


@dataclass(frozen=True)
class Target:
    """Weekly target amount."""

    value: float
    unit: str = DEFAULT_UNIT


@dataclass(frozen=True)
class DailyLog:
    """Amount logged for a single calendar day."""

    date: str
    value: float
    memo: str | None = None
    part1: float | None = None
    part2: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", date.fromisoformat(self.date).isoformat())


@dataclass(frozen=True)
class WeekRecord:
    """A persisted week: target plus the daily logs of one ISO week."""

    iso_year: int
    iso_week: int
    target: Target
    daily_logs: tuple[DailyLog, ...] = ()
    last_modified: datetime = EPOCH_SENTINEL

    def __post_init__(self) -> None:
        if not ISO_YEAR_MIN <= self.iso_year <= ISO_YEAR_MAX:
            raise ValueError(f"ISO year out of range: {self.iso_year}")
        if not ISO_WEEK_MIN <= self.iso_week <= ISO_WEEK_MAX:
            raise ValueError(f"ISO week out of range: {self.iso_week}")
        if not iso_week_exists(self.iso_year, self.iso_week):
            raise ValueError(f"{self.iso_year} has no ISO week {self.iso_week}")
        logs = tuple(self.daily_logs)
        dates = [log.date for log in logs]
        if len(dates) != len(set(dates)):
            raise ValueError("Daily logs must have unique dates")
        start, end = self.start_date, self.end_date
        for log in logs:
            if not start <= date.fromisoformat(log.date) <= end:
                raise ValueError(f"Daily log {log.date} is outside week {self.key}")
        object.__setattr__(self, "daily_logs", logs)
        object.__setattr__(self, "last_modified", to_millis(self.last_modified))

    @classmethod
    def empty(cls, iso_year: int, iso_week: int) -> "WeekRecord":
        """Return a week that has never been persisted."""
        return cls(
            iso_year=iso_year,
            iso_week=iso_week,
            target=Target(value=0.0),
            daily_logs=(),
            last_modified=EPOCH_SENTINEL,
        )

    @property
    def key(self) -> str:
        return week_key(self.iso_year, self.iso_week)

    @property
    def start_date(self) -> date:
        """Monday of the ISO week."""
        return date.fromisocalendar(self.iso_year, self.iso_week, 1)

    @property
    def end_date(self) -> date:
        """Sunday of the ISO week."""
        return date.fromisocalendar(self.iso_year, self.iso_week, 7)

    @property
    def total(self) -> float:
        return sum(log.value for log in self.daily_logs)

    def with_day_log(self, entry: DailyLog, now: datetime) -> "WeekRecord":
        """Return a copy with ``entry`` replacing or adding its day."""
        logs = [log for log in self.daily_logs if log.date != entry.date]
        logs.append(entry)
        logs.sort(key=lambda log: log.date)
        return replace(self, daily_logs=tuple(logs), last_modified=now)

    def with_target(self, value: float, now: datetime) -> "WeekRecord":
        """Return a copy with a new target value, keeping the unit."""
        return replace(
            self,
            target=Target(value=value, unit=self.target.unit),
            last_modified=now,
        )


@dataclass(frozen=True)
class CacheEntry:
    """A week record as held by the local cache.

    ``pending`` marks a write the remote store has not accepted yet; it is
    persisted with the entry so pending writes survive a restart.
    """

    payload: WeekRecord
    cached_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    pending: bool = False

    def is_stale(self, now: datetime, ttl: timedelta = CACHE_TTL) -> bool:
        """Return True once the entry is older than ``ttl``."""
        return now - self.cached_at > ttl


@dataclass(frozen=True)
class LoadedWeek:
    """A week returned by a load, with where it came from."""

    record: WeekRecord
    stale: bool = False
    source: str = "cache"


def iso_week_of(day: str) -> tuple[int, int]:
    """Return the ISO (year, week) that contains a ``YYYY-MM-DD`` date."""
    calendar = date.fromisoformat(day).isocalendar()
    return calendar.year, calendar.week


def record_to_document(record: WeekRecord) -> dict[str, object]:
    """Serialize a week record to a JSON-compatible dict."""
    return {
        "iso_year": record.iso_year,
        "iso_week": record.iso_week,
        "target": {"value": record.target.value, "unit": record.target.unit},
        "daily_logs": [_log_to_document(log) for log in record.daily_logs],
        "last_modified": record.last_modified.isoformat(timespec="milliseconds"),
    }


def record_from_document(document: object) -> WeekRecord:
    """Parse a stored document, tolerating missing and malformed fields.

    Raises ``SerializationError`` only when the week identity is unusable.
    """
    if not isinstance(document, dict):
        raise SerializationError("Week document is not an object")
    try:
        iso_year = int(document["iso_year"])
        iso_week = int(document["iso_week"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SerializationError(f"Week document has no valid key: {exc}") from exc
    if not iso_week_exists(iso_year, iso_week):
        raise SerializationError(
            f"Week document has no valid key: {iso_year}-W{iso_week}"
        )
    week_start = date.fromisocalendar(iso_year, iso_week, 1)
    week_end = date.fromisocalendar(iso_year, iso_week, 7)

    raw_target = document.get("target")
    if not isinstance(raw_target, dict):
        raw_target = {}
    unit = raw_target.get("unit")
    target = Target(
        value=_non_negative(raw_target.get("value")),
        unit=unit if isinstance(unit, str) and unit else DEFAULT_UNIT,
    )

    logs: list[DailyLog] = []
    seen: set[str] = set()
    raw_logs = document.get("daily_logs")
    for raw in raw_logs if isinstance(raw_logs, list) else []:
        log = _log_from_document(raw)
        if log is None or log.date in seen:
            continue
        if not week_start <= date.fromisoformat(log.date) <= week_end:
            continue
        seen.add(log.date)
        logs.append(log)

    try:
        return WeekRecord(
            iso_year=iso_year,
            iso_week=iso_week,
            target=target,
            daily_logs=tuple(logs),
            last_modified=parse_instant(document.get("last_modified")),
        )
    except ValueError as exc:
        raise SerializationError(str(exc)) from exc


def parse_instant(value: object) -> datetime:
    """Parse an ISO string or epoch milliseconds; unusable input is the epoch."""
    if isinstance(value, datetime):
        return to_millis(value)
    if isinstance(value, int | float) and not isinstance(value, bool):
        try:
            return to_millis(datetime.fromtimestamp(value / 1000, tz=UTC))
        except (OverflowError, OSError, ValueError):
            return EPOCH_SENTINEL
    if isinstance(value, str):
        try:
            return to_millis(datetime.fromisoformat(value))
        except ValueError:
            return EPOCH_SENTINEL
    return EPOCH_SENTINEL


def _log_to_document(log: DailyLog) -> dict[str, object]:
    document: dict[str, object] = {"date": log.date, "value": log.value}
    if log.memo is not None:
        document["memo"] = log.memo
    if log.part1 is not None:
        document["part1"] = log.part1
    if log.part2 is not None:
        document["part2"] = log.part2
    return document


def _log_from_document(raw: object) -> DailyLog | None:
    if not isinstance(raw, dict):
        return None
    day = raw.get("date")
    if not isinstance(day, str):
        return None
    memo = raw.get("memo")
    try:
        return DailyLog(
            date=day,
            value=_non_negative(raw.get("value")),
            memo=memo if isinstance(memo, str) else None,
            part1=_optional_non_negative(raw.get("part1")),
            part2=_optional_non_negative(raw.get("part2")),
        )
    except ValueError:
        return None


def _non_negative(value: object) -> float:
    """Return a finite, non-negative float; anything else reads as zero."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


def _optional_non_negative(value: object) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)
