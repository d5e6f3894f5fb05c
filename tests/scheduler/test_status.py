"""Tests for crawl status views."""

from datetime import UTC, datetime

import pytest

from src.core.models import CrawlResult, CrawlType, RunStatus
from src.scheduler.status import CrawlStatus, describe_run, progress_percent


def make_result(**overrides) -> CrawlResult:
    values = dict(
        id=1,
        project_id="p1",
        crawl_type="keyword_ranks",
        trigger_type="scheduled",
        status=RunStatus.RUNNING,
        current_stage="fetching_rankings",
        items_total=8,
        items_processed=3,
        items_updated=3,
        errors_count=0,
        estimated_duration_sec=120,
        started_at=datetime(2026, 3, 4, 15, 0, 0),
    )
    values.update(overrides)
    return CrawlResult(**values)


@pytest.mark.parametrize(
    "processed,total,expected",
    [(0, 10, 0), (3, 8, 38), (10, 10, 100), (12, 10, 100), (5, 0, 0)],
)
def test_progress_percent(processed, total, expected) -> None:
    assert progress_percent(processed, total) == expected


class TestDescribeRun:
    def test_running_elapsed_counts_to_now(self) -> None:
        view = describe_run(make_result(), now=datetime(2026, 3, 4, 15, 1, 30, tzinfo=UTC))

        assert view.elapsed_sec == 90
        assert view.progress_percent == 38
        assert view.started_at.tzinfo is not None
        assert view.completed_at is None

    def test_finished_elapsed_counts_to_completion(self) -> None:
        result = make_result(
            status=RunStatus.COMPLETED,
            items_processed=8,
            completed_at=datetime(2026, 3, 4, 15, 2, 0),
            duration_ms=120000,
            message="Checked 8 keywords",
        )

        view = describe_run(result, now=datetime(2026, 3, 5, tzinfo=UTC))

        assert view.elapsed_sec == 120
        assert view.progress_percent == 100

    def test_to_dict(self) -> None:
        data = describe_run(
            make_result(), now=datetime(2026, 3, 4, 15, 0, 10, tzinfo=UTC)
        ).to_dict()

        assert data["status"] == "running"
        assert data["started_at"] == "2026-03-04T15:00:00+00:00"
        assert data["completed_at"] is None
        assert data["elapsed_sec"] == 10


class TestCrawlStatus:
    async def test_running_and_history(self, fake_results) -> None:
        first = await fake_results.start("p1", CrawlType.KEYWORD_RANKS, items_total=4)
        await fake_results.start("p1", CrawlType.BACKLINKS, items_total=2)
        await fake_results.start("p2", CrawlType.COMPETITORS, items_total=10)
        await fake_results.finish(first.id, RunStatus.COMPLETED, "done", 1000, items_processed=4)
        status = CrawlStatus(fake_results)

        running = await status.running("p1")
        assert [view.crawl_type for view in running] == ["backlinks"]
        assert len(await status.running()) == 2

        history = await status.history("p1")
        assert [view.id for view in history] == [2, 1]
        assert history[1].status == "completed"
        assert history[1].progress_percent == 100

    async def test_get(self, fake_results) -> None:
        run = await fake_results.start("p1", CrawlType.KEYWORD_RANKS, items_total=4)
        await fake_results.update_progress(run.id, items_processed=1)
        status = CrawlStatus(fake_results)

        view = await status.get(run.id)
        assert view.items_processed == 1
        assert view.progress_percent == 25
        assert await status.get(99) is None
