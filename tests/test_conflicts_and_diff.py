"""Tests for conflict and diff detection."""

from datetime import timedelta

from elevation_loom.domain.weeks import DailyLog
from elevation_loom.services.conflicts import has_conflict, remote_is_newer
from elevation_loom.services.diff import is_identical
from tests.conftest import START, make_week


def test_conflict_tolerance_boundary() -> None:
    assert not has_conflict(START, START + timedelta(milliseconds=1000))
    assert has_conflict(START, START + timedelta(milliseconds=1001))


def test_conflict_is_symmetric() -> None:
    assert has_conflict(START + timedelta(milliseconds=1001), START)
    assert not has_conflict(START + timedelta(milliseconds=999), START)


def test_custom_tolerance() -> None:
    assert has_conflict(START, START + timedelta(milliseconds=60), tolerance_ms=50)


def test_remote_is_newer_only_when_ahead() -> None:
    assert remote_is_newer(START, START + timedelta(seconds=2))
    assert not remote_is_newer(START + timedelta(seconds=2), START)
    assert not remote_is_newer(START, START + timedelta(milliseconds=500))


def test_identical_ignores_last_modified() -> None:
    first = make_week()
    second = make_week(last_modified=START + timedelta(minutes=3))

    assert is_identical(second, first)


def test_identical_compares_numbers_by_value() -> None:
    assert is_identical(make_week(value=5000), make_week(value=5000.0))


def test_changed_target_is_not_identical() -> None:
    assert not is_identical(make_week(value=5001), make_week(value=5000))


def test_daily_log_order_matters() -> None:
    monday = DailyLog(date="2026-02-09", value=100)
    tuesday = DailyLog(date="2026-02-10", value=200)

    assert not is_identical(
        make_week(logs=(monday, tuesday)), make_week(logs=(tuesday, monday))
    )


def test_memo_change_is_not_identical() -> None:
    plain = make_week(logs=(DailyLog(date="2026-02-10", value=800),))
    noted = make_week(logs=(DailyLog(date="2026-02-10", value=800, memo="windy"),))

    assert not is_identical(noted, plain)


def test_nothing_previous_is_never_identical() -> None:
    assert not is_identical(make_week(), None)
