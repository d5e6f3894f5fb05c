"""
Due-schedule evaluation.

A schedule is due when the current weekday is one of its days, the
current wall-clock minute equals its scheduled time, and it has not
already run today (in the scheduler's timezone). Matching is on the exact
minute, not a window; the poll loop ticks once a minute.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, tzinfo

from src.core.models import CrawlSchedule
from src.core.utils.time import local_date, utcnow
from src.scheduler.clock import current_weekday_and_minute


def is_due(
    days_of_week: Sequence[int],
    scheduled_time: str,
    weekday: int,
    hhmm: str,
    last_run_date: date | None,
    today: date,
) -> bool:
    """
    Decide whether a schedule fires now.

    Args:
        days_of_week: Weekdays the schedule runs on (0 = Sunday).
        scheduled_time: Schedule time, "HH:MM".
        weekday: Current weekday (0 = Sunday).
        hhmm: Current wall-clock minute, "HH:MM".
        last_run_date: Local calendar date of the last run, if any.
        today: Current local calendar date.
    """
    if weekday not in days_of_week:
        return False
    if scheduled_time != hhmm:
        return False
    if last_run_date is not None and last_run_date >= today:
        return False
    return True


def find_due_schedules(
    schedules: Iterable[CrawlSchedule],
    tz: tzinfo,
    now: datetime | None = None,
) -> list[CrawlSchedule]:
    """
    Filter schedules down to the ones that fire at `now` in `tz`.

    Disabled schedules are never due. Whether a due schedule can actually
    start is the concurrency guard's decision, not this function's.
    """
    now = now or utcnow()
    weekday, hhmm = current_weekday_and_minute(tz, now)
    today = now.astimezone(tz).date()

    due = []
    for schedule in schedules:
        if not schedule.enabled:
            continue
        last_run_date = (
            local_date(schedule.last_run_at, tz) if schedule.last_run_at is not None else None
        )
        if is_due(
            schedule.days_of_week or [],
            schedule.scheduled_time,
            weekday,
            hhmm,
            last_run_date,
            today,
        ):
            due.append(schedule)
    return due
