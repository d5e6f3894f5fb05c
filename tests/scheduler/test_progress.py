"""Tests for the progress reporter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from src.core.models import CrawlType
from src.scheduler.progress import ProgressReporter
from tests.fakes import FakeResults


async def started_reporter(total: int = 5) -> tuple[FakeResults, ProgressReporter, asyncio.Event]:
    results = FakeResults()
    run = await results.start("p1", CrawlType.KEYWORD_RANKS, items_total=total)
    cancel = asyncio.Event()
    return results, ProgressReporter(results, run.id, total, cancel), cancel


class TestProgressReporter:
    async def test_monotonic(self) -> None:
        results, reporter, _ = await started_reporter()

        for value in [1, 3, 2, 3, 4]:
            await reporter.report(value)

        written = [w["items_processed"] for w in results.progress_writes]
        assert written == [1, 3, 4]
        assert reporter.processed == 4

    async def test_clamped_to_total(self) -> None:
        results, reporter, _ = await started_reporter(total=3)

        await reporter.report(7)

        assert reporter.processed == 3
        assert results.rows[reporter.run_id].items_processed == 3

    async def test_set_stage_with_real_total(self) -> None:
        results, reporter, _ = await started_reporter(total=10)

        await reporter.set_stage("fetching_rankings", total=4)

        row = results.rows[reporter.run_id]
        assert row.current_stage == "fetching_rankings"
        assert row.items_total == 4
        assert reporter.total == 4

    async def test_stage_total_never_below_processed(self) -> None:
        _, reporter, _ = await started_reporter(total=10)
        await reporter.report(6)

        await reporter.set_stage("second_pass", total=2)

        assert reporter.total == 6

    async def test_stopped_record_sets_cancel(self) -> None:
        results, reporter, cancel = await started_reporter()
        await results.stop(reporter.run_id)

        await reporter.report(1)

        assert cancel.is_set()
        assert reporter.should_stop() is True
        assert reporter.cancelled is True

    async def test_write_failure_is_logged_not_raised(self) -> None:
        results = MagicMock()
        results.update_progress = AsyncMock(side_effect=RuntimeError("db down"))
        cancel = asyncio.Event()
        reporter = ProgressReporter(results, 1, 5, cancel)

        await reporter.report(2)

        assert reporter.processed == 2
        assert not cancel.is_set()
