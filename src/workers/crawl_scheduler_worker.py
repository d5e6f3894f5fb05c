"""
Background worker that runs scheduled crawls.

This worker runs continuously and:
- Fails any crawl left "running" by a previous process at startup
- Checks enabled schedules for every wall-clock minute and dispatches due ones
- Refreshes the scheduler timezone from settings on its own timer
- Supports graceful shutdown on SIGINT/SIGTERM, letting in-flight crawls finish
"""

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NoReturn

from src.core.config.loader import get_config
from src.core.services.crawl_results import INTERRUPTED_MESSAGE, CrawlResultService
from src.core.services.crawl_schedules import CrawlScheduleService
from src.core.storage.postgres import get_db
from src.core.utils.time import utcnow
from src.scheduler.clock import DEFAULT_TIMEZONE, TimezoneResolver
from src.scheduler.evaluator import find_due_schedules
from src.scheduler.orchestrator import CrawlOrchestrator, Dispatch

logger = logging.getLogger(__name__)

# Global event for graceful shutdown
shutdown_event = asyncio.Event()

# Longest gap of missed minutes evaluated after a stall
MAX_CATCH_UP_MINUTES = 10


@dataclass
class WorkerConfig:
    """Configuration for the worker."""

    poll_interval_seconds: int
    timezone_refresh_seconds: int
    default_timezone: str
    log_level: str


def load_worker_config() -> WorkerConfig:
    """
    Load worker configuration from environment variables and config files.

    Environment variables take precedence over config files.
    """
    config = get_config()
    worker_config = config.get("workers", {}).get("crawl_scheduler_worker", {})
    scheduler_config = config.get("scheduler", {})

    return WorkerConfig(
        poll_interval_seconds=int(
            os.environ.get(
                "CRAWL_POLL_INTERVAL_SECONDS",
                worker_config.get("poll_interval_seconds", 60),
            )
        ),
        timezone_refresh_seconds=int(
            os.environ.get(
                "CRAWL_TZ_REFRESH_SECONDS",
                worker_config.get("timezone_refresh_seconds", 300),
            )
        ),
        default_timezone=scheduler_config.get("default_timezone", DEFAULT_TIMEZONE),
        log_level=os.environ.get(
            "WORKER_LOG_LEVEL",
            worker_config.get("log_level", "INFO"),
        ),
    )


def setup_logging(log_level: str) -> None:
    """
    Configure logging for the worker.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def handle_signal(signum: int, frame: object) -> None:
    """Handle SIGINT/SIGTERM for graceful shutdown."""
    signal_name = signal.Signals(signum).name
    logger.info(f"Received signal {signal_name}, shutting down gracefully...")
    shutdown_event.set()


async def sleep_until_shutdown(seconds: float) -> None:
    """Sleep in small chunks to respond quickly to the shutdown signal."""
    loop = asyncio.get_running_loop()
    sleep_end = loop.time() + seconds
    while not shutdown_event.is_set() and loop.time() < sleep_end:
        await asyncio.sleep(min(1, max(sleep_end - loop.time(), 0)))


def minute_floor(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def minutes_to_evaluate(last: datetime | None, now: datetime) -> list[datetime]:
    """
    Wall-clock minutes the next tick has to evaluate, oldest first.

    The first tick evaluates only the current minute. After that every minute
    since `last` is returned, so a slow tick or a late wakeup never skips a
    scheduled time. A gap longer than MAX_CATCH_UP_MINUTES (suspend, clock
    jump) is cut to its most recent minutes.
    """
    current = minute_floor(now)
    if last is None:
        return [current]
    if current <= last:
        return []

    missed = int((current - last) / timedelta(minutes=1))
    if missed > MAX_CATCH_UP_MINUTES:
        logger.warning(
            f"Scheduler fell {missed} minutes behind, "
            f"evaluating only the last {MAX_CATCH_UP_MINUTES}"
        )
        missed = MAX_CATCH_UP_MINUTES
    return [current - timedelta(minutes=n) for n in range(missed - 1, -1, -1)]


def seconds_until_next_tick(now: datetime, interval: int) -> float:
    """Seconds to the next multiple of `interval` on the wall clock."""
    return interval - (now.timestamp() % interval)


async def run_tick(
    orchestrator: CrawlOrchestrator,
    schedules: CrawlScheduleService,
    resolver: TimezoneResolver,
    now: datetime | None = None,
) -> list[Dispatch]:
    """
    One poll: find due schedules and start each without waiting for it.

    Returns:
        One Dispatch per due schedule, accepted or refused.
    """
    enabled = await schedules.list_enabled()
    due = find_due_schedules(enabled, resolver.zone, now)
    if not due:
        logger.debug(f"No due schedules ({len(enabled)} enabled)")
        return []

    logger.info(f"{len(due)} schedule(s) due in {resolver.name}")
    dispatched = []
    for schedule in due:
        result = orchestrator.dispatch(schedule)
        if not result.accepted:
            logger.info(f"Schedule {schedule.id} not started: {result.message}")
        dispatched.append(result)
    return dispatched


async def poll_loop(
    config: WorkerConfig,
    orchestrator: CrawlOrchestrator,
    schedules: CrawlScheduleService,
    resolver: TimezoneResolver,
    clock: Callable[[], datetime] = utcnow,
) -> None:
    """
    Tick until shutdown, evaluating each wall-clock minute once.

    Wakeups are aligned to the poll interval on the wall clock rather than
    counted from the end of the previous tick. A failed minute is logged and
    the loop carries on with the next one.
    """
    last_minute: datetime | None = None
    while not shutdown_event.is_set():
        for minute in minutes_to_evaluate(last_minute, clock()):
            try:
                await run_tick(orchestrator, schedules, resolver, minute)
            except Exception as e:
                logger.error(
                    f"Error in scheduler tick for {minute:%H:%M} UTC: {e}", exc_info=True
                )
            last_minute = minute

        await sleep_until_shutdown(seconds_until_next_tick(clock(), config.poll_interval_seconds))


async def timezone_loop(config: WorkerConfig, resolver: TimezoneResolver) -> None:
    """Re-read the timezone setting until shutdown."""
    while not shutdown_event.is_set():
        await sleep_until_shutdown(config.timezone_refresh_seconds)
        if shutdown_event.is_set():
            break
        await resolver.refresh()


async def run_worker(config: WorkerConfig) -> None:
    """
    Main worker loop.

    Sweeps orphaned runs, then runs the poll and timezone loops until
    shutdown and waits for in-flight crawls.
    """
    logger.info(
        f"Starting crawl scheduler with poll_interval={config.poll_interval_seconds}s, "
        f"timezone_refresh={config.timezone_refresh_seconds}s"
    )

    results = CrawlResultService()
    schedules = CrawlScheduleService()
    orchestrator = CrawlOrchestrator.from_config()
    resolver = TimezoneResolver(default=config.default_timezone)

    swept = await results.fail_interrupted(INTERRUPTED_MESSAGE)
    if swept:
        logger.info(f"Marked {swept} interrupted crawl(s) as failed")

    await resolver.refresh()
    logger.info(f"Scheduler timezone: {resolver.name}")

    loops = [
        asyncio.create_task(poll_loop(config, orchestrator, schedules, resolver)),
        asyncio.create_task(timezone_loop(config, resolver)),
    ]
    try:
        await asyncio.gather(*loops)
    finally:
        for task in loops:
            task.cancel()
        if orchestrator.active_count:
            logger.info(f"Waiting for {orchestrator.active_count} running crawl(s)...")
        await orchestrator.wait_idle()

    logger.info("Worker stopped")


async def main_async() -> None:
    """
    Async entrypoint for the worker.

    Loads configuration, initializes database connection, and starts the worker loop.
    """
    config = load_worker_config()
    setup_logging(config.log_level)

    logger.info("Crawl Scheduler Worker starting...")
    logger.info(f"Configuration: {config}")

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    # Initialize database connection (fatal if fails)
    try:
        db = await get_db()
        await db.connect()
        logger.info("Database connection established")
    except Exception as e:
        logger.critical(f"Cannot connect to database: {e}", exc_info=True)
        sys.exit(1)

    try:
        await run_worker(config)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        try:
            await db.disconnect()
            logger.info("Database connection closed")
        except Exception as e:
            logger.error(f"Error closing database connection: {e}")


def main() -> NoReturn:
    """
    Main entrypoint for the worker.

    This is the synchronous wrapper that starts the async event loop.
    """
    try:
        asyncio.run(main_async())
    except SystemExit:
        raise
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
