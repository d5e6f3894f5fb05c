"""Tests for the rate-limited batch fetcher."""

import pytest

from src.core.primitives.batch import BatchResult, fetch_all
from tests.fakes import RecordingSleep


async def double(item: int) -> int:
    return item * 2


class TestFetchAll:
    """Tests for fetch_all."""

    async def test_partial_failure_continues(self) -> None:
        """Five items, the third fails: four results, one error, five progress calls."""
        progress: list[tuple[int, int]] = []
        sleep = RecordingSleep()

        async def call(item: int) -> int:
            if item == 3:
                raise ValueError("item three broke")
            return item * 10

        batch = await fetch_all(
            [1, 2, 3, 4, 5],
            call,
            delay_ms=500,
            on_progress=lambda done, total: progress.append((done, total)),
            sleep=sleep,
        )

        assert [value for _, value in batch.results] == [10, 20, 40, 50]
        assert len(batch.errors) == 1
        assert batch.errors[0].index == 2
        assert batch.errors[0].item == 3
        assert batch.errors[0].message == "item three broke"
        assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]
        assert batch.processed == 5
        assert batch.all_failed is False

    async def test_sleeps_between_items_not_after_last(self) -> None:
        sleep = RecordingSleep()

        await fetch_all([1, 2, 3], double, delay_ms=500, sleep=sleep)

        assert sleep.calls == [0.5, 0.5]

    async def test_zero_delay_never_sleeps(self) -> None:
        sleep = RecordingSleep()

        await fetch_all([1, 2], double, delay_ms=0, sleep=sleep)

        assert sleep.calls == []

    async def test_items_run_in_order(self) -> None:
        seen: list[int] = []

        async def call(item: int) -> int:
            seen.append(item)
            return item

        await fetch_all([3, 1, 2], call, delay_ms=0)

        assert seen == [3, 1, 2]

    async def test_async_progress_callback(self) -> None:
        progress: list[int] = []

        async def on_progress(done: int, total: int) -> None:
            progress.append(done)

        await fetch_all([1, 2], double, delay_ms=0, on_progress=on_progress)

        assert progress == [1, 2]

    async def test_progress_callback_failure_does_not_abort(self) -> None:
        def on_progress(done: int, total: int) -> None:
            raise RuntimeError("progress store down")

        batch = await fetch_all([1, 2, 3], double, delay_ms=0, on_progress=on_progress)

        assert batch.succeeded == 3

    async def test_should_stop_ends_batch(self) -> None:
        calls: list[int] = []

        async def call(item: int) -> int:
            calls.append(item)
            return item

        batch = await fetch_all(
            [1, 2, 3, 4], call, delay_ms=0, should_stop=lambda: len(calls) >= 2
        )

        assert calls == [1, 2]
        assert batch.cancelled is True
        assert batch.processed == 2

    async def test_all_failed(self) -> None:
        async def call(item: int) -> int:
            raise RuntimeError("down")

        batch = await fetch_all([1, 2], call, delay_ms=0)

        assert batch.all_failed is True
        assert batch.succeeded == 0

    async def test_empty_batch(self) -> None:
        batch = await fetch_all([], double, delay_ms=500)

        assert batch.total == 0
        assert batch.all_failed is False


@pytest.mark.parametrize(
    "processed,results,expected",
    [(0, [], False), (2, [], True), (2, [(1, 1)], False)],
)
def test_all_failed_property(processed, results, expected) -> None:
    assert BatchResult(total=2, results=results, processed=processed).all_failed is expected
