"""Pydantic models for week and sync API payloads."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from elevation_loom.domain.weeks import (
    DEFAULT_UNIT,
    DailyLog,
    LoadedWeek,
    Target,
    WeekRecord,
)


class TargetPayload(BaseModel):
    """Weekly target payload."""

    value: float = Field(ge=0, allow_inf_nan=False)
    unit: str = DEFAULT_UNIT


class DayLogPayload(BaseModel):
    """Single day log payload."""

    value: float = Field(ge=0, allow_inf_nan=False)
    memo: str | None = None
    part1: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    part2: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class DailyLogPayload(DayLogPayload):
    """Day log payload inside a week document."""

    date: date


class WeekPayload(BaseModel):
    """Full week document sent by clients."""

    target: TargetPayload
    daily_logs: list[DailyLogPayload] = Field(default_factory=list)
    last_modified: datetime | None = None
    expected_last_modified: datetime | None = None

    @field_validator("daily_logs")
    @classmethod
    def _unique_dates(cls, logs: list[DailyLogPayload]) -> list[DailyLogPayload]:
        dates = [log.date for log in logs]
        if len(dates) != len(set(dates)):
            raise ValueError("daily_logs must have unique dates")
        return sorted(logs, key=lambda log: log.date)

    def to_record(self, iso_year: int, iso_week: int, now: datetime) -> WeekRecord:
        """Build the domain record for a week key."""
        return WeekRecord(
            iso_year=iso_year,
            iso_week=iso_week,
            target=Target(value=self.target.value, unit=self.target.unit),
            daily_logs=tuple(
                DailyLog(
                    date=log.date.isoformat(),
                    value=log.value,
                    memo=log.memo,
                    part1=log.part1,
                    part2=log.part2,
                )
                for log in self.daily_logs
            ),
            last_modified=self.last_modified or now,
        )


class WeekResponse(BaseModel):
    """Week document returned to clients."""

    key: str
    iso_year: int
    iso_week: int
    start_date: date
    end_date: date
    target: TargetPayload
    daily_logs: list[DailyLogPayload]
    total: float
    last_modified: datetime
    stale: bool = False
    source: str = "cache"

    @classmethod
    def from_record(
        cls, record: WeekRecord, stale: bool = False, source: str = "cache"
    ) -> "WeekResponse":
        return cls(
            key=record.key,
            iso_year=record.iso_year,
            iso_week=record.iso_week,
            start_date=record.start_date,
            end_date=record.end_date,
            target=TargetPayload(value=record.target.value, unit=record.target.unit),
            daily_logs=[
                DailyLogPayload(
                    date=date.fromisoformat(log.date),
                    value=log.value,
                    memo=log.memo,
                    part1=log.part1,
                    part2=log.part2,
                )
                for log in record.daily_logs
            ],
            total=record.total,
            last_modified=record.last_modified,
            stale=stale,
            source=source,
        )

    @classmethod
    def from_loaded(cls, loaded: LoadedWeek) -> "WeekResponse":
        return cls.from_record(loaded.record, stale=loaded.stale, source=loaded.source)


class SyncStatusResponse(BaseModel):
    """Current sync bookkeeping."""

    pending_count: int
    last_sync_time: datetime | None = None


class SyncTriggerResponse(BaseModel):
    """Outcome of a user-triggered sync."""

    success: bool
    message: str
