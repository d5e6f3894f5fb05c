"""
Read-side views of crawl runs.

Status readers poll these while runs are in flight; values come straight
from the crawl result rows the orchestrator keeps current.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.core.models import CrawlResult
from src.core.services.crawl_results import CrawlResultService
from src.core.utils.time import as_utc, utcnow


def progress_percent(processed: int, total: int) -> int:
    """
    Whole-number completion percentage, clamped to 0-100.

    >>> progress_percent(3, 8)
    38
    >>> progress_percent(5, 0)
    0
    """
    if total <= 0:
        return 0
    return max(0, min(100, round(processed / total * 100)))


@dataclass
class RunView:
    """A crawl run as shown to operators."""

    id: int
    project_id: str
    crawl_type: str
    trigger_type: str
    status: str
    current_stage: str | None
    items_total: int
    items_processed: int
    progress_percent: int
    estimated_duration_sec: int | None
    started_at: datetime
    elapsed_sec: int
    completed_at: datetime | None = None
    duration_ms: int | None = None
    message: str | None = None
    items_updated: int = 0
    errors_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "crawl_type": self.crawl_type,
            "trigger_type": self.trigger_type,
            "status": self.status,
            "current_stage": self.current_stage,
            "items_total": self.items_total,
            "items_processed": self.items_processed,
            "progress_percent": self.progress_percent,
            "estimated_duration_sec": self.estimated_duration_sec,
            "started_at": self.started_at.isoformat(),
            "elapsed_sec": self.elapsed_sec,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "message": self.message,
            "items_updated": self.items_updated,
            "errors_count": self.errors_count,
        }


def describe_run(result: CrawlResult, now: datetime | None = None) -> RunView:
    """
    Build the operator view of a run.

    elapsed_sec counts to now for running crawls and to completion otherwise.
    """
    started = as_utc(result.started_at)
    end = as_utc(result.completed_at) if result.completed_at else (now or utcnow())
    return RunView(
        id=result.id,
        project_id=result.project_id,
        crawl_type=result.crawl_type,
        trigger_type=result.trigger_type,
        status=result.status,
        current_stage=result.current_stage,
        items_total=result.items_total or 0,
        items_processed=result.items_processed or 0,
        progress_percent=progress_percent(result.items_processed or 0, result.items_total or 0),
        estimated_duration_sec=result.estimated_duration_sec,
        started_at=started,
        elapsed_sec=max(0, int((end - started).total_seconds())),
        completed_at=as_utc(result.completed_at) if result.completed_at else None,
        duration_ms=result.duration_ms,
        message=result.message,
        items_updated=result.items_updated or 0,
        errors_count=result.errors_count or 0,
    )


class CrawlStatus:
    """Running crawls, single runs and history for status readers."""

    def __init__(self, results: CrawlResultService | None = None) -> None:
        self.results = results or CrawlResultService()

    async def running(self, project_id: str | None = None) -> list[RunView]:
        """Running crawls for one project, or across all projects."""
        if project_id is None:
            rows = await self.results.list_all_running()
        else:
            rows = await self.results.list_running(project_id)
        now = utcnow()
        return [describe_run(row, now) for row in rows]

    async def get(self, run_id: int) -> RunView | None:
        row = await self.results.get(run_id)
        return describe_run(row) if row is not None else None

    async def history(self, project_id: str, limit: int = 50) -> list[RunView]:
        rows = await self.results.list_history(project_id, limit=limit)
        now = utcnow()
        return [describe_run(row, now) for row in rows]
