"""
Live progress reporting for a running crawl.

Each run gets one reporter bound to its crawl result row. Handlers call
it between items; every call is written through to the database so
status readers see progress while the run is in flight.
"""

import asyncio
import logging

from src.core.services.crawl_results import CrawlResultService

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Writes stage and item progress for one run.

    processed never decreases and never exceeds total. When a write finds
    the row is no longer running (an operator stopped it) the cancel event
    is set so the handler stops at the next item boundary.
    """

    def __init__(
        self,
        results: CrawlResultService,
        run_id: int,
        total: int,
        cancel_event: asyncio.Event,
    ) -> None:
        self._results = results
        self.run_id = run_id
        self.total = max(total, 0)
        self.processed = 0
        self.stage = "initializing"
        self._cancel = cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def should_stop(self) -> bool:
        return self._cancel.is_set()

    async def set_stage(self, stage: str, total: int | None = None) -> None:
        """
        Enter a new stage, optionally with the real item count.

        The real count replaces the estimate made before the run started.
        """
        self.stage = stage
        if total is not None:
            self.total = max(total, self.processed)
        await self._write(stage=stage, items_total=self.total if total is not None else None)

    async def report(self, processed: int, total: int | None = None) -> None:
        """Record that `processed` items of the current batch are done."""
        if total is not None and total > self.total:
            self.total = total
        value = min(max(processed, self.processed), self.total)
        if value == self.processed:
            return
        self.processed = value
        await self._write(items_processed=value)

    async def _write(self, **values) -> None:
        try:
            still_running = await self._results.update_progress(self.run_id, **values)
        except Exception as e:
            logger.warning(f"Progress update failed for run {self.run_id}: {e}")
            return
        if not still_running and not self._cancel.is_set():
            logger.info(f"Run {self.run_id} is no longer running, cancelling handler")
            self._cancel.set()
