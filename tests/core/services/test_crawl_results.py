"""
Tests for CrawlResultService.

Integration tests that use a real PostgreSQL database.
"""

from src.core.models import CrawlType, RunStatus, TriggerType
from src.core.services.crawl_results import INTERRUPTED_MESSAGE, CrawlResultService


class TestCrawlResultLifecycle:
    """start -> progress -> finish/stop transitions."""

    async def test_start_creates_running_record(self, database) -> None:
        service = CrawlResultService(database)

        run = await service.start(
            "p1",
            CrawlType.KEYWORD_RANKS,
            schedule_id=7,
            items_total=40,
            estimated_duration_sec=120,
        )

        assert run.id is not None
        assert run.status == RunStatus.RUNNING
        assert run.current_stage == "initializing"
        assert run.trigger_type == "scheduled"
        assert run.items_total == 40
        assert run.estimated_duration_sec == 120

    async def test_progress_never_decreases(self, database) -> None:
        service = CrawlResultService(database)
        run = await service.start("p1", CrawlType.BACKLINKS, items_total=10)

        assert await service.update_progress(run.id, items_processed=6, stage="fetching_backlinks")
        assert await service.update_progress(run.id, items_processed=4)

        stored = await service.get(run.id)
        assert stored.items_processed == 6
        assert stored.current_stage == "fetching_backlinks"

    async def test_finish_completed(self, database) -> None:
        service = CrawlResultService(database)
        run = await service.start("p1", CrawlType.PAGES_HEALTH, items_total=2)

        finished = await service.finish(
            run.id,
            RunStatus.COMPLETED,
            "Checked 2 pages",
            duration_ms=1500,
            items_processed=2,
            items_updated=2,
            details={"healthy": 2},
        )

        stored = await service.get(run.id)
        assert finished is True
        assert stored.status == "completed"
        assert stored.completed_at is not None
        assert stored.duration_ms == 1500
        assert stored.details == {"healthy": 2}

    async def test_stopped_record_is_frozen(self, database) -> None:
        service = CrawlResultService(database)
        run = await service.start("p1", CrawlType.COMPETITORS, items_total=5)
        await service.update_progress(run.id, items_processed=2)

        stopped = await service.stop(run.id)
        assert stopped.status == "stopped"

        assert await service.update_progress(run.id, items_processed=4) is False
        assert await service.finish(run.id, RunStatus.COMPLETED, "done", 10) is False
        assert await service.stop(run.id) is None

        stored = await service.get(run.id)
        assert stored.status == "stopped"
        assert stored.items_processed == 2
        assert stored.message == "Stopped by operator"

    async def test_stop_missing_run(self, database) -> None:
        assert await CrawlResultService(database).stop(12345) is None


class TestCrawlResultQueries:
    async def test_list_running_and_history(self, database) -> None:
        service = CrawlResultService(database)
        first = await service.start("p1", CrawlType.KEYWORD_RANKS)
        second = await service.start("p1", CrawlType.BACKLINKS, trigger_type=TriggerType.MANUAL)
        await service.start("p2", CrawlType.BACKLINKS)
        await service.finish(first.id, RunStatus.FAILED, "boom", 5, errors_count=1)

        running = await service.list_running("p1")
        assert [r.id for r in running] == [second.id]
        assert await service.list_running("p1", CrawlType.KEYWORD_RANKS) == []
        assert len(await service.list_all_running()) == 2

        history = await service.list_history("p1")
        assert {r.id for r in history} == {first.id, second.id}

    async def test_fail_interrupted(self, database) -> None:
        service = CrawlResultService(database)
        orphan = await service.start("p1", CrawlType.DEEP_DISCOVERY)
        done = await service.start("p1", CrawlType.BACKLINKS)
        await service.finish(done.id, RunStatus.COMPLETED, "ok", 5)

        count = await service.fail_interrupted()

        stored = await service.get(orphan.id)
        assert count == 1
        assert stored.status == "failed"
        assert stored.message == INTERRUPTED_MESSAGE
        assert stored.errors_count == 1
        assert (await service.get(done.id)).status == "completed"
