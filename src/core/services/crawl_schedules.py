"""
Service for crawl schedule persistence.

Schedules are created per project, edited in place and disabled rather
than deleted. The scheduler reads the enabled set every tick and stamps
last-run bookkeeping after each execution.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, update

from src.core.models import CrawlSchedule, CrawlType, LastRunStatus
from src.core.storage.exceptions import NotFoundError
from src.core.storage.postgres import Database, get_db
from src.core.utils.time import utcnow_naive

logger = logging.getLogger(__name__)

# Fields an edit may change; bookkeeping columns are owned by the scheduler
EDITABLE_FIELDS = {
    "crawl_type",
    "frequency",
    "scheduled_time",
    "days_of_week",
    "enabled",
    "config",
}

DEFAULT_SCHEDULES: list[dict[str, Any]] = [
    {
        "crawl_type": CrawlType.KEYWORD_RANKS,
        "frequency": "twice_weekly",
        "scheduled_time": "09:00",
        "days_of_week": [1, 3, 5],
        "config": {"batch_size": 100},
    },
    {
        "crawl_type": CrawlType.PAGES_HEALTH,
        "frequency": "twice_weekly",
        "scheduled_time": "10:00",
        "days_of_week": [0, 2, 4, 6],
        "config": {"page_limit": 50},
    },
    {
        "crawl_type": CrawlType.COMPETITORS,
        "frequency": "weekly",
        "scheduled_time": "14:00",
        "days_of_week": [3, 5],
        "config": {"top_n": 10},
    },
]


def validate_schedule_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Check and normalize schedule fields before they are written.

    Raises:
        ValueError: On a malformed time, weekday list or crawl type.
    """
    cleaned = dict(fields)

    if "crawl_type" in cleaned:
        cleaned["crawl_type"] = CrawlType.parse(str(cleaned["crawl_type"]))

    if "scheduled_time" in cleaned:
        value = cleaned["scheduled_time"]
        if not isinstance(value, str) or len(value) != 5 or value[2] != ":":
            raise ValueError("scheduled_time must be in HH:MM format (00:00-23:59)")
        try:
            hours, minutes = int(value[:2]), int(value[3:])
        except ValueError:
            raise ValueError("scheduled_time must be in HH:MM format (00:00-23:59)") from None
        if not (0 <= hours <= 23 and 0 <= minutes <= 59):
            raise ValueError("scheduled_time must be in HH:MM format (00:00-23:59)")

    if "days_of_week" in cleaned:
        days = cleaned["days_of_week"]
        if not isinstance(days, list) or any(
            isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days
        ):
            raise ValueError("days_of_week must be a list of integers 0-6 (0 = Sunday)")
        cleaned["days_of_week"] = sorted(set(days))

    return cleaned


def cron_expression(schedule: CrawlSchedule) -> str:
    """Render a schedule as a cron expression, for display."""
    hour, minute = schedule.scheduled_time.split(":")
    days = ",".join(str(d) for d in schedule.days_of_week) or "*"
    return f"{int(minute)} {int(hour)} * * {days}"


class CrawlScheduleService:
    """Create, read and update crawl schedules."""

    def __init__(self, db: Database | None = None) -> None:
        """Initialize with a database instance, or None to use get_db() lazily."""
        self._db = db

    async def _get_db(self) -> Database:
        if self._db is None:
            self._db = await get_db()
        return self._db

    async def create(
        self,
        project_id: str,
        crawl_type: str,
        scheduled_time: str,
        days_of_week: list[int],
        frequency: str = "daily",
        config: dict[str, Any] | None = None,
        enabled: bool = True,
    ) -> CrawlSchedule:
        """
        Create a schedule.

        Raises:
            ValueError: If any field is malformed.
        """
        fields = validate_schedule_fields(
            {
                "crawl_type": crawl_type,
                "scheduled_time": scheduled_time,
                "days_of_week": days_of_week,
            }
        )
        schedule = CrawlSchedule(
            project_id=project_id,
            frequency=frequency,
            enabled=enabled,
            config=config if config is not None else {},
            **fields,
        )
        db = await self._get_db()
        async with db.session() as session:
            session.add(schedule)
            await session.commit()
            await session.refresh(schedule)

        logger.info(f"Crawl schedule created: {schedule}")
        return schedule

    async def get(self, schedule_id: int) -> CrawlSchedule | None:
        db = await self._get_db()
        async with db.session() as session:
            return await session.get(CrawlSchedule, schedule_id)

    async def update(self, schedule_id: int, **changes: Any) -> CrawlSchedule:
        """
        Apply an edit to a schedule.

        Raises:
            NotFoundError: If the schedule does not exist.
            ValueError: If a field is not editable or is malformed.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        changes = validate_schedule_fields(changes)

        db = await self._get_db()
        async with db.session() as session:
            schedule = await session.get(CrawlSchedule, schedule_id)
            if schedule is None:
                raise NotFoundError(f"Crawl schedule not found: {schedule_id}")
            for key, value in changes.items():
                setattr(schedule, key, value)
            await session.commit()
            await session.refresh(schedule)

        logger.info(f"Crawl schedule updated: {schedule}")
        return schedule

    async def disable(self, schedule_id: int) -> CrawlSchedule:
        """Soft-delete a schedule."""
        return await self.update(schedule_id, enabled=False)

    async def list_enabled(self) -> list[CrawlSchedule]:
        """All enabled schedules across projects."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = select(CrawlSchedule).where(CrawlSchedule.enabled.is_(True))
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_for_project(self, project_id: str) -> list[CrawlSchedule]:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(CrawlSchedule)
                .where(CrawlSchedule.project_id == project_id)
                .order_by(CrawlSchedule.scheduled_time, CrawlSchedule.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_for_type(self, project_id: str, crawl_type: str) -> CrawlSchedule | None:
        """First schedule of a given type for a project, enabled ones preferred."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(CrawlSchedule)
                .where(
                    CrawlSchedule.project_id == project_id,
                    CrawlSchedule.crawl_type == crawl_type,
                )
                .order_by(CrawlSchedule.enabled.desc(), CrawlSchedule.id)
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def record_last_run(
        self,
        schedule_id: int,
        status: LastRunStatus,
        ran_at: datetime | None = None,
    ) -> None:
        """
        Stamp last_run_at/last_run_status after an execution.

        `ran_at` is the naive UTC instant the run started. The due check
        compares its local date, so a run that finishes after midnight still
        counts for the day it was triggered.
        """
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(CrawlSchedule)
                .where(CrawlSchedule.id == schedule_id)
                .values(last_run_at=ran_at or utcnow_naive(), last_run_status=str(status))
            )
            await session.execute(stmt)
            await session.commit()

    async def create_default_schedules(self, project_id: str) -> list[CrawlSchedule]:
        """
        Seed the standard schedules for a new project.

        Does nothing when the project already has any schedule.
        """
        existing = await self.list_for_project(project_id)
        if existing:
            logger.info(f"Project {project_id} already has schedules, skipping defaults")
            return []

        created = []
        for template in DEFAULT_SCHEDULES:
            created.append(
                await self.create(
                    project_id=project_id,
                    crawl_type=template["crawl_type"],
                    scheduled_time=template["scheduled_time"],
                    days_of_week=list(template["days_of_week"]),
                    frequency=template["frequency"],
                    config=dict(template["config"]),
                )
            )

        logger.info(f"Created {len(created)} default schedules for project {project_id}")
        return created
