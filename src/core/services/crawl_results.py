"""
Service for recording crawl executions.

Provides start/progress/finish/stop methods for crawl results plus the
reads the status views need. Every write after start() is conditional on
the row still being "running", which keeps terminal rows frozen even if a
handler keeps reporting after an operator stop.
"""

import logging
from typing import Any

from sqlalchemy import func, select, update

from src.core.models import CrawlResult, RunStatus, TriggerType
from src.core.storage.postgres import Database, get_db
from src.core.utils.time import utcnow_naive

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Interrupted by scheduler restart"


class CrawlResultService:
    """
    Persistence for crawl results (run records).

    Records each execution with status, live progress, timing and
    outcome counters.
    """

    def __init__(self, db: Database | None = None) -> None:
        """Initialize with a database instance, or None to use get_db() lazily."""
        self._db = db

    async def _get_db(self) -> Database:
        if self._db is None:
            self._db = await get_db()
        return self._db

    async def start(
        self,
        project_id: str,
        crawl_type: str,
        schedule_id: int | None = None,
        trigger_type: TriggerType = TriggerType.SCHEDULED,
        items_total: int = 0,
        estimated_duration_sec: int | None = None,
    ) -> CrawlResult:
        """
        Create a running crawl result at stage "initializing".

        Returns:
            The persisted row (with id).
        """
        result = CrawlResult(
            project_id=project_id,
            crawl_type=str(crawl_type),
            schedule_id=schedule_id,
            trigger_type=str(trigger_type),
            status=str(RunStatus.RUNNING),
            current_stage="initializing",
            items_total=items_total,
            items_processed=0,
            items_updated=0,
            errors_count=0,
            estimated_duration_sec=estimated_duration_sec,
            details={},
            started_at=utcnow_naive(),
        )
        db = await self._get_db()
        async with db.session() as session:
            session.add(result)
            await session.commit()
            await session.refresh(result)

        logger.info(f"Crawl started: {crawl_type} for project {project_id} (run {result.id})")
        return result

    async def update_progress(
        self,
        run_id: int,
        items_processed: int | None = None,
        stage: str | None = None,
        items_total: int | None = None,
    ) -> bool:
        """
        Write live progress for a running crawl.

        items_processed never moves backwards. Returns False when the row is
        no longer running (stopped by an operator, or already finished).
        """
        values: dict[str, Any] = {}
        if items_processed is not None:
            values["items_processed"] = func.greatest(
                CrawlResult.items_processed, items_processed
            )
        if stage is not None:
            values["current_stage"] = stage
        if items_total is not None:
            values["items_total"] = items_total

        db = await self._get_db()
        async with db.session() as session:
            if not values:
                row = await session.get(CrawlResult, run_id)
                return row is not None and row.status == RunStatus.RUNNING

            stmt = (
                update(CrawlResult)
                .where(CrawlResult.id == run_id, CrawlResult.status == RunStatus.RUNNING)
                .values(**values)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def finish(
        self,
        run_id: int,
        status: RunStatus,
        message: str,
        duration_ms: int,
        items_processed: int | None = None,
        items_updated: int = 0,
        errors_count: int = 0,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """
        Move a running crawl to a terminal state.

        Returns:
            False if the row had already left "running" (e.g. stopped).
        """
        values: dict[str, Any] = {
            "status": str(status),
            "message": message[:2000],
            "completed_at": utcnow_naive(),
            "duration_ms": duration_ms,
            "items_updated": items_updated,
            "errors_count": errors_count,
            "current_stage": str(status),
        }
        if items_processed is not None:
            values["items_processed"] = func.greatest(
                CrawlResult.items_processed, items_processed
            )
        if details is not None:
            values["details"] = details

        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(CrawlResult)
                .where(CrawlResult.id == run_id, CrawlResult.status == RunStatus.RUNNING)
                .values(**values)
            )
            result = await session.execute(stmt)
            await session.commit()
            finished = result.rowcount > 0

        if finished:
            logger.info(f"Crawl finished: run {run_id} -> {status}")
        else:
            logger.warning(f"Crawl run {run_id} was no longer running, outcome not recorded")
        return finished

    async def stop(self, run_id: int, message: str = "Stopped by operator") -> CrawlResult | None:
        """
        Mark a running crawl as stopped.

        Returns:
            The updated row, or None if it does not exist or was not running.
        """
        db = await self._get_db()
        async with db.session() as session:
            row = await session.get(CrawlResult, run_id)
            if row is None or row.status != RunStatus.RUNNING:
                return None

            now = utcnow_naive()
            row.status = str(RunStatus.STOPPED)
            row.current_stage = str(RunStatus.STOPPED)
            row.message = message
            row.completed_at = now
            row.duration_ms = int((now - row.started_at).total_seconds() * 1000)
            await session.commit()
            await session.refresh(row)

        logger.info(f"Crawl stopped: run {run_id} ({row.crawl_type})")
        return row

    async def get(self, run_id: int) -> CrawlResult | None:
        db = await self._get_db()
        async with db.session() as session:
            return await session.get(CrawlResult, run_id)

    async def list_running(
        self, project_id: str, crawl_type: str | None = None
    ) -> list[CrawlResult]:
        """Running crawls for a project, optionally of one type."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = select(CrawlResult).where(
                CrawlResult.project_id == project_id,
                CrawlResult.status == RunStatus.RUNNING,
            )
            if crawl_type is not None:
                stmt = stmt.where(CrawlResult.crawl_type == str(crawl_type))
            stmt = stmt.order_by(CrawlResult.started_at.desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_all_running(self) -> list[CrawlResult]:
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(CrawlResult)
                .where(CrawlResult.status == RunStatus.RUNNING)
                .order_by(CrawlResult.started_at.desc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_history(self, project_id: str, limit: int = 50) -> list[CrawlResult]:
        """Most recent crawl results for a project, newest first."""
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                select(CrawlResult)
                .where(CrawlResult.project_id == project_id)
                .order_by(CrawlResult.started_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def fail_interrupted(self, message: str = INTERRUPTED_MESSAGE) -> int:
        """
        Fail every crawl still marked running.

        Called once at scheduler startup: nothing can be in flight in a
        process that has just started, so these rows were orphaned by a
        crash or restart.

        Returns:
            Number of rows marked failed.
        """
        db = await self._get_db()
        async with db.session() as session:
            stmt = (
                update(CrawlResult)
                .where(CrawlResult.status == RunStatus.RUNNING)
                .values(
                    status=str(RunStatus.FAILED),
                    current_stage=str(RunStatus.FAILED),
                    message=message,
                    errors_count=func.greatest(CrawlResult.errors_count, 1),
                    completed_at=utcnow_naive(),
                )
            )
            result = await session.execute(stmt)
            await session.commit()
            count = result.rowcount

        if count:
            logger.warning(f"Marked {count} orphaned running crawl(s) as failed")
        return count
