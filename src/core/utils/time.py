"""Time utilities for consistent timezone handling.

Timestamps are stored as naive UTC (DateTime columns without timezone).
Scheduling decisions are made in the operator's configured IANA zone, so
conversions between the two live here.
"""

from datetime import UTC, date, datetime, tzinfo


def utcnow() -> datetime:
    """
    Get current UTC time as a timezone-aware datetime.

    Returns:
        datetime: Current UTC time with timezone information.

    Example:
        >>> now = utcnow()
        >>> now.tzinfo == UTC
        True
    """
    return datetime.now(UTC)


def utcnow_naive() -> datetime:
    """
    Get current UTC time as a naive datetime (no timezone info).

    Used as the default for SQLAlchemy DateTime columns that don't have
    timezone=True. For all other uses prefer utcnow().

    Example:
        >>> utcnow_naive().tzinfo is None
        True
    """
    return datetime.now(UTC).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime read from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def local_date(value: datetime, tz: tzinfo) -> date:
    """
    Calendar date of a stored timestamp in the given zone.

    Example:
        >>> from zoneinfo import ZoneInfo
        >>> local_date(datetime(2026, 3, 4, 3, 0), ZoneInfo("America/Chicago"))
        datetime.date(2026, 3, 3)
    """
    return as_utc(value).astimezone(tz).date()
