"""Write suppression: detect candidates that match the last known state."""

from elevation_loom.domain.weeks import WeekRecord


def normalize(record: WeekRecord) -> tuple[object, ...]:
    """Return the comparable shape of a record, without its timestamp."""
    return (
        record.iso_year,
        record.iso_week,
        float(record.target.value),
        record.target.unit,
        tuple(
            (
                log.date,
                float(log.value),
                log.memo,
                None if log.part1 is None else float(log.part1),
                None if log.part2 is None else float(log.part2),
            )
            for log in record.daily_logs
        ),
    )


def is_identical(candidate: WeekRecord, previous: WeekRecord | None) -> bool:
    """Return True when writing ``candidate`` would not change anything.

    Daily log order matters; ``last_modified`` is ignored because every edit
    refreshes it.
    """
    if previous is None:
        return False
    return normalize(candidate) == normalize(previous)
