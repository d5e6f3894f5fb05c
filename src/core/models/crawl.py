"""
SQLAlchemy models for crawl scheduling and execution.

CrawlSchedule is the recurring trigger an operator configures for a
project. CrawlResult is one execution of a crawl (scheduled or manual)
with live progress and a terminal outcome.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.storage.postgres import Base
from src.core.utils.time import utcnow_naive


class CrawlType(StrEnum):
    """Kinds of crawl the engine knows how to run."""

    KEYWORD_RANKS = "keyword_ranks"
    COMPETITORS = "competitors"
    PAGES_HEALTH = "pages_health"
    DEEP_DISCOVERY = "deep_discovery"
    BACKLINKS = "backlinks"
    COMPETITOR_BACKLINKS = "competitor_backlinks"

    @classmethod
    def parse(cls, value: str) -> "CrawlType":
        """
        Resolve a crawl type from user input, accepting legacy aliases.

        Raises:
            ValueError: If the value names no known crawl type.
        """
        normalized = value.strip().lower()
        normalized = LEGACY_CRAWL_TYPES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ValueError(f"Invalid crawl type '{value}'. Valid types: {valid}") from None


LEGACY_CRAWL_TYPES: dict[str, str] = {
    "keywords": "keyword_ranks",
    "pages": "pages_health",
    "technical": "pages_health",
}


class RunStatus(StrEnum):
    """Lifecycle of a crawl result: running, then exactly one terminal state."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class TriggerType(StrEnum):
    """How a crawl result was started."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


class LastRunStatus(StrEnum):
    """Outcome recorded on the schedule after each run."""

    SUCCESS = "success"
    FAILED = "failed"
    STOPPED = "stopped"


class CrawlSchedule(Base):
    """
    Recurring crawl trigger for one project.

    Fires at scheduled_time (HH:MM, operator timezone) on each weekday in
    days_of_week (0 = Sunday .. 6 = Saturday). Schedules are disabled
    rather than deleted so run history keeps its reference.
    """

    __tablename__ = "crawl_schedules"

    id: Mapped[int | None] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String(36), nullable=False)
    crawl_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=CrawlType.KEYWORD_RANKS
    )
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="daily")
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False)
    days_of_week: Mapped[list[int]] = mapped_column(JSONB, nullable=False, default=list)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_run_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive
    )

    __table_args__ = (
        Index("ix_crawl_schedules_project_id", "project_id"),
        Index("ix_crawl_schedules_enabled", "enabled"),
        Index("ix_crawl_schedules_crawl_type", "crawl_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<CrawlSchedule(id={self.id}, type='{self.crawl_type}', "
            f"at='{self.scheduled_time}', days={self.days_of_week})>"
        )


class CrawlResult(Base):
    """
    One execution of a crawl.

    Progress columns are written while the run is in flight so readers see
    live progress. Once status leaves "running" the row is frozen.
    """

    __tablename__ = "crawl_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String(36), nullable=False)
    schedule_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    crawl_type: Mapped[str] = mapped_column(String(50), nullable=False)
    trigger_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TriggerType.SCHEDULED
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RunStatus.RUNNING)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    items_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_duration_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    started_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow_naive
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_crawl_results_project_id", "project_id"),
        Index("ix_crawl_results_schedule_id", "schedule_id"),
        Index("ix_crawl_results_status", "status"),
        Index("ix_crawl_results_started_at", "started_at"),
    )

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING

    def __repr__(self) -> str:
        return (
            f"<CrawlResult(id={self.id}, type='{self.crawl_type}', "
            f"status='{self.status}', {self.items_processed}/{self.items_total})>"
        )
