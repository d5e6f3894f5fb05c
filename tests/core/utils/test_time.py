"""Tests for time utilities."""

from datetime import UTC, date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from src.core.utils.time import as_utc, local_date, utcnow, utcnow_naive


def test_utcnow_is_aware() -> None:
    assert utcnow().tzinfo == UTC


def test_utcnow_naive_has_no_tz() -> None:
    assert utcnow_naive().tzinfo is None


def test_as_utc_naive() -> None:
    assert as_utc(datetime(2026, 3, 4, 15, 0)) == datetime(2026, 3, 4, 15, 0, tzinfo=UTC)


def test_as_utc_converts_aware() -> None:
    value = datetime(2026, 3, 4, 10, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert as_utc(value) == datetime(2026, 3, 4, 15, 0, tzinfo=UTC)


def test_local_date_crosses_midnight() -> None:
    chicago = ZoneInfo("America/Chicago")
    # 03:00 UTC is still the previous evening in Chicago
    assert local_date(datetime(2026, 3, 4, 3, 0), chicago) == date(2026, 3, 3)
    assert local_date(datetime(2026, 3, 4, 15, 0), chicago) == date(2026, 3, 4)
