"""
Crawl execution orchestrator.

Takes a schedule (real or synthesized for a manual trigger) and drives
one run through its lifecycle:

    guard check -> estimate -> running record -> handler -> terminal state

Nothing raised by a handler or by persistence escapes execute(); every
path ends in a RunOutcome and releases the concurrency guard.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.core.config.loader import get_scheduler_config
from src.core.models import (
    CrawlResult,
    CrawlSchedule,
    CrawlType,
    LastRunStatus,
    RunStatus,
    TriggerType,
)
from src.core.primitives.fetcher import Fetcher
from src.core.primitives.ranking_provider import RankingProvider
from src.core.services.crawl_results import CrawlResultService
from src.core.services.crawl_schedules import CrawlScheduleService
from src.core.services.projects import ProjectDataService
from src.core.services.settings import SettingsService
from src.core.utils.time import utcnow_naive
from src.scheduler.exceptions import CrawlError, UnknownCrawlTypeError
from src.scheduler.guard import ConcurrencyGuard
from src.scheduler.handlers import (
    CrawlContext,
    CrawlHandler,
    build_handlers,
    estimated_durations,
)
from src.scheduler.progress import ProgressReporter

logger = logging.getLogger(__name__)

ESTIMATE_FALLBACK = 10
DEFAULT_REQUEST_DELAY_MS = 500
DUPLICATE = "duplicate"


@dataclass
class RunOutcome:
    """
    Result of one execution attempt.

    status is one of completed, failed, stopped, or "duplicate" when the
    guard refused the run (no record was created then).
    """

    status: str
    message: str
    project_id: str
    crawl_type: str
    schedule_id: int | None = None
    trigger_type: str = TriggerType.SCHEDULED
    run_id: int | None = None
    running_run_id: int | None = None
    started_at: datetime | None = None
    duration_ms: int = 0
    items_total: int = 0
    items_processed: int = 0
    items_updated: int = 0
    errors_count: int = 0

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def duplicate(self) -> bool:
        return self.status == DUPLICATE


@dataclass
class Dispatch:
    """
    Answer to a fire-and-forget request.

    accepted runs carry the background task; refused ones carry the
    outcome explaining why.
    """

    accepted: bool
    message: str
    task: asyncio.Task | None = None
    outcome: RunOutcome | None = None

    @property
    def running_run_id(self) -> int | None:
        return self.outcome.running_run_id if self.outcome else None


class CrawlOrchestrator:
    """
    Runs crawls through their lifecycle.

    Usage:
        orchestrator = CrawlOrchestrator.from_config()
        outcome = await orchestrator.execute(schedule)
    """

    def __init__(
        self,
        handlers: dict[CrawlType, CrawlHandler],
        results: CrawlResultService | None = None,
        schedules: CrawlScheduleService | None = None,
        projects: ProjectDataService | None = None,
        settings: SettingsService | None = None,
        guard: ConcurrencyGuard | None = None,
        durations: dict[str, int] | None = None,
        estimate_fallback: int = ESTIMATE_FALLBACK,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        missing = [t.value for t in CrawlType if t not in handlers]
        if missing:
            raise UnknownCrawlTypeError(f"No handler registered for: {', '.join(missing)}")

        self.handlers = handlers
        self.results = results or CrawlResultService()
        self.schedules = schedules or CrawlScheduleService()
        self.projects = projects or ProjectDataService()
        self.settings = settings or SettingsService()
        self.guard = guard if guard is not None else ConcurrencyGuard()
        self.durations = {**estimated_durations(), **(durations or {})}
        self.estimate_fallback = estimate_fallback
        self._sleep = sleep
        self._cancel_events: dict[int, asyncio.Event] = {}
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, guard: ConcurrencyGuard | None = None) -> "CrawlOrchestrator":
        """Wire services, provider and handlers from the YAML config."""
        config = get_scheduler_config()
        projects = ProjectDataService()
        handlers = build_handlers(projects, RankingProvider.from_config(), Fetcher())
        return cls(
            handlers,
            projects=projects,
            guard=guard,
            durations=config.get("estimated_durations") or {},
            estimate_fallback=int(config.get("estimate_fallback", ESTIMATE_FALLBACK)),
        )

    # -- execution ------------------------------------------------------------

    async def execute(
        self,
        schedule: CrawlSchedule,
        trigger_type: TriggerType = TriggerType.SCHEDULED,
    ) -> RunOutcome:
        """Run a schedule to completion and return its outcome. Never raises."""
        claim = self._claim(schedule, trigger_type)
        if isinstance(claim, RunOutcome):
            return claim
        return await self._run(schedule, claim, trigger_type)

    def dispatch(
        self,
        schedule: CrawlSchedule,
        trigger_type: TriggerType = TriggerType.SCHEDULED,
    ) -> Dispatch:
        """
        Start a run in the background.

        The guard is claimed before returning, so a refused run is reported
        immediately instead of from inside the task.
        """
        claim = self._claim(schedule, trigger_type)
        if isinstance(claim, RunOutcome):
            return Dispatch(accepted=False, message=claim.message, outcome=claim)

        task = asyncio.create_task(
            self._run(schedule, claim, trigger_type),
            name=f"crawl-{schedule.project_id}-{claim}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return Dispatch(accepted=True, message=f"{claim} crawl started", task=task)

    async def trigger_manual(self, project_id: str, crawl_type: str) -> Dispatch:
        """
        Start a crawl on demand.

        Builds a transient schedule carrying the config of the project's
        existing schedule of that type, if there is one.

        Raises:
            ValueError: If crawl_type names no known crawl type.
        """
        parsed = CrawlType.parse(crawl_type)

        if self.guard.is_held(project_id, parsed):
            running = self.guard.holder(project_id, parsed)
            outcome = self._duplicate(project_id, parsed, None, TriggerType.MANUAL, running)
            return Dispatch(accepted=False, message=outcome.message, outcome=outcome)

        config: dict[str, Any] = {}
        try:
            existing = await self.schedules.find_for_type(project_id, parsed)
            if existing is not None and existing.config:
                config = dict(existing.config)
        except Exception as e:
            logger.warning(f"Could not load schedule config for manual {parsed}: {e}")

        transient = CrawlSchedule(
            id=None,
            project_id=project_id,
            crawl_type=str(parsed),
            frequency="manual",
            scheduled_time="00:00",
            days_of_week=[],
            enabled=False,
            config=config,
        )
        logger.info(f"Manual {parsed} crawl requested for project {project_id}")
        return self.dispatch(transient, TriggerType.MANUAL)

    async def stop(self, run_id: int) -> CrawlResult | None:
        """
        Stop a running crawl.

        The record is marked stopped right away; the handler notices at its
        next item boundary. Returns None if the run is not running.
        """
        row = await self.results.stop(run_id)
        if row is None:
            return None
        event = self._cancel_events.get(run_id)
        if event is not None:
            event.set()
        return row

    async def wait_idle(self) -> None:
        """Wait for every dispatched run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    # -- internals ------------------------------------------------------------

    def _claim(self, schedule: CrawlSchedule, trigger_type: TriggerType) -> CrawlType | RunOutcome:
        """Resolve the crawl type and take the guard, or explain why not."""
        try:
            crawl_type = CrawlType.parse(str(schedule.crawl_type))
        except ValueError as e:
            logger.error(f"Schedule {schedule.id}: {e}")
            return RunOutcome(
                status=RunStatus.FAILED,
                message=str(e),
                project_id=schedule.project_id,
                crawl_type=str(schedule.crawl_type),
                schedule_id=schedule.id,
                trigger_type=trigger_type,
                errors_count=1,
            )

        if not self.guard.try_acquire(schedule.id, schedule.project_id, crawl_type):
            running = self.guard.holder(schedule.project_id, crawl_type)
            logger.info(
                f"Skipping {crawl_type} for project {schedule.project_id}: already running"
                + (f" (run {running})" if running else "")
            )
            return self._duplicate(
                schedule.project_id, crawl_type, schedule.id, trigger_type, running
            )

        return crawl_type

    def _duplicate(
        self,
        project_id: str,
        crawl_type: CrawlType,
        schedule_id: int | None,
        trigger_type: TriggerType,
        running_run_id: int | None,
    ) -> RunOutcome:
        """
        Refusal for a run whose keys are held.

        The holder has no run id until its record is created, which happens
        after the estimate; a refusal in that window says the crawl is
        starting and carries running_run_id=None.
        """
        if running_run_id is None:
            message = f"{crawl_type} crawl is already starting for this project"
        else:
            message = (
                f"{crawl_type} crawl is already running for this project (run {running_run_id})"
            )
        return RunOutcome(
            status=DUPLICATE,
            message=message,
            project_id=project_id,
            crawl_type=str(crawl_type),
            schedule_id=schedule_id,
            trigger_type=trigger_type,
            running_run_id=running_run_id,
        )

    async def _run(
        self,
        schedule: CrawlSchedule,
        crawl_type: CrawlType,
        trigger_type: TriggerType,
    ) -> RunOutcome:
        """Execute a claimed run. The guard is released on every path."""
        outcome = RunOutcome(
            status=RunStatus.FAILED,
            message="",
            project_id=schedule.project_id,
            crawl_type=str(crawl_type),
            schedule_id=schedule.id,
            trigger_type=trigger_type,
            started_at=utcnow_naive(),
        )
        try:
            await self._perform(schedule, crawl_type, outcome)
            await self._record_last_run(schedule, outcome)
        finally:
            self.guard.release(schedule.id, schedule.project_id, crawl_type)
            if outcome.run_id is not None:
                self._cancel_events.pop(outcome.run_id, None)
        return outcome

    async def _perform(
        self,
        schedule: CrawlSchedule,
        crawl_type: CrawlType,
        outcome: RunOutcome,
    ) -> None:
        """Steps from estimate to terminal state, filling in `outcome`."""
        project_id = schedule.project_id
        config = dict(schedule.config or {})
        handler = self.handlers[crawl_type]
        started = time.monotonic()
        reporter: ProgressReporter | None = None

        try:
            outcome.items_total = await self._estimate(handler, project_id, config)

            record = await self.results.start(
                project_id,
                crawl_type,
                schedule_id=schedule.id,
                trigger_type=outcome.trigger_type,
                items_total=outcome.items_total,
                estimated_duration_sec=self.durations.get(str(crawl_type)),
            )
            outcome.run_id = record.id
            self.guard.attach_run(project_id, crawl_type, record.id)

            cancel = asyncio.Event()
            self._cancel_events[record.id] = cancel
            reporter = ProgressReporter(self.results, record.id, outcome.items_total, cancel)

            project = await self.projects.get_project(project_id)
            if project is None:
                raise CrawlError(f"Project not found: {project_id}")

            ctx = CrawlContext(
                project=project,
                config=config,
                progress=reporter,
                delay_ms=await self._request_delay(),
                sleep=self._sleep,
            )
            result = await handler.run(ctx)

            outcome.duration_ms = self._elapsed_ms(started)
            outcome.items_total = reporter.total
            outcome.items_processed = max(reporter.processed, result.items_processed)
            outcome.items_updated = result.items_updated
            outcome.errors_count = result.errors_count
            outcome.message = result.message

            if reporter.cancelled or result.cancelled:
                outcome.status = RunStatus.STOPPED
            else:
                finished = await self.results.finish(
                    record.id,
                    RunStatus.COMPLETED,
                    result.message,
                    outcome.duration_ms,
                    items_processed=outcome.items_processed,
                    items_updated=result.items_updated,
                    errors_count=result.errors_count,
                    details=result.details,
                )
                # A stop that landed after the last item leaves the record stopped
                outcome.status = RunStatus.COMPLETED if finished else RunStatus.STOPPED

            if outcome.status == RunStatus.STOPPED:
                outcome.message = (
                    f"Stopped after {outcome.items_processed} of {outcome.items_total} items"
                )

        except Exception as e:
            outcome.duration_ms = self._elapsed_ms(started)
            if reporter is not None:
                outcome.items_processed = reporter.processed
                if reporter.cancelled:
                    # The record is already stopped and stays that way
                    outcome.status = RunStatus.STOPPED
                    outcome.message = f"Stopped, then failed: {str(e) or type(e).__name__}"
                    logger.info(f"Run {outcome.run_id} raised after stop: {outcome.message}")
                    return

            outcome.status = RunStatus.FAILED
            outcome.message = str(e) or type(e).__name__
            outcome.errors_count = max(outcome.errors_count, 1)
            logger.error(
                f"{crawl_type} crawl failed for project {project_id}: {outcome.message}",
                exc_info=True,
            )
            if outcome.run_id is not None:
                await self._record_failure(outcome)

    async def _estimate(self, handler: CrawlHandler, project_id: str, config: dict) -> int:
        try:
            return max(int(await handler.estimate_total(project_id, config)), 0)
        except Exception as e:
            logger.warning(
                f"Could not estimate {handler.crawl_type} for project {project_id}: {e}, "
                f"using {self.estimate_fallback}"
            )
            return self.estimate_fallback

    async def _request_delay(self) -> int:
        try:
            return int(await self.settings.get("request_delay_ms"))
        except Exception as e:
            logger.warning(f"Could not read request delay: {e}, using {DEFAULT_REQUEST_DELAY_MS}ms")
            return DEFAULT_REQUEST_DELAY_MS

    async def _record_failure(self, outcome: RunOutcome) -> None:
        try:
            await self.results.finish(
                outcome.run_id,
                RunStatus.FAILED,
                outcome.message,
                outcome.duration_ms,
                items_processed=outcome.items_processed,
                errors_count=outcome.errors_count,
            )
        except Exception as e:
            logger.error(f"Could not record failure for run {outcome.run_id}: {e}")

    async def _record_last_run(self, schedule: CrawlSchedule, outcome: RunOutcome) -> None:
        if schedule.id is None:
            return
        status = {
            RunStatus.COMPLETED: LastRunStatus.SUCCESS,
            RunStatus.STOPPED: LastRunStatus.STOPPED,
        }.get(outcome.status, LastRunStatus.FAILED)
        try:
            await self.schedules.record_last_run(schedule.id, status, ran_at=outcome.started_at)
        except Exception as e:
            logger.error(f"Could not update last run for schedule {schedule.id}: {e}")

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Crawl task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Crawl task {task.get_name()} raised: {error}")
            return
        outcome = task.result()
        logger.info(
            f"{outcome.crawl_type} for project {outcome.project_id} {outcome.status}: "
            f"{outcome.message} ({outcome.duration_ms}ms)"
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
