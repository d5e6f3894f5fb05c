"""
Crawl scheduling and execution.

The worker evaluates schedules with the evaluator, and the orchestrator
runs what is due under the concurrency guard.
"""

from src.scheduler.clock import TimezoneResolver, current_weekday_and_minute
from src.scheduler.evaluator import find_due_schedules, is_due
from src.scheduler.exceptions import CrawlError, UnknownCrawlTypeError
from src.scheduler.guard import ConcurrencyGuard
from src.scheduler.orchestrator import CrawlOrchestrator, Dispatch, RunOutcome
from src.scheduler.status import CrawlStatus, RunView, progress_percent

__all__ = [
    "TimezoneResolver",
    "current_weekday_and_minute",
    "find_due_schedules",
    "is_due",
    "CrawlError",
    "UnknownCrawlTypeError",
    "ConcurrencyGuard",
    "CrawlOrchestrator",
    "Dispatch",
    "RunOutcome",
    "CrawlStatus",
    "RunView",
    "progress_percent",
]
