"""
Rate-limited batch fetcher.

Runs one external call per work item, strictly one after another, with a
fixed pause between calls to respect the provider's rate limit. A failed
item is recorded and the batch moves on; deciding whether the run as a
whole failed is left to the caller.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], Awaitable[None] | None]
StopCheck = Callable[[], Awaitable[bool] | bool]


@dataclass
class ItemError:
    """A work item whose call raised."""

    index: int
    item: Any
    message: str


@dataclass
class BatchResult(Generic[T, R]):
    """
    Outcome of a batch.

    results holds (item, value) pairs for items whose call returned;
    errors holds one entry per item whose call raised.
    """

    total: int
    results: list[tuple[T, R]] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    processed: int = 0
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def all_failed(self) -> bool:
        """True when at least one item ran and none succeeded."""
        return self.processed > 0 and not self.results


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def fetch_all(
    items: Sequence[T],
    call: Callable[[T], Awaitable[R]],
    delay_ms: int,
    on_progress: ProgressCallback | None = None,
    should_stop: StopCheck | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> BatchResult[T, R]:
    """
    Call `call(item)` for each item in order.

    Args:
        items: Work items.
        call: Async per-item operation (one provider request).
        delay_ms: Pause between consecutive items; none after the last.
        on_progress: Called with (processed, total) after every item,
            success or failure. May be sync or async.
        should_stop: Checked before each item; a truthy result ends the
            batch early with cancelled=True.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        BatchResult with successes, per-item errors and the processed count.
    """
    total = len(items)
    batch: BatchResult[T, R] = BatchResult(total=total)

    for index, item in enumerate(items):
        if should_stop is not None and await _maybe_await(should_stop()):
            logger.info(f"Batch cancelled after {batch.processed}/{total} items")
            batch.cancelled = True
            break

        try:
            value = await call(item)
            batch.results.append((item, value))
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Batch item {index + 1}/{total} failed: {message}")
            batch.errors.append(ItemError(index=index, item=item, message=message))

        batch.processed += 1

        if on_progress is not None:
            try:
                await _maybe_await(on_progress(batch.processed, total))
            except Exception as e:
                logger.warning(f"Progress callback failed at {batch.processed}/{total}: {e}")

        if index < total - 1 and delay_ms > 0:
            await sleep(delay_ms / 1000)

    return batch
