"""
In-memory concurrency guard for crawl runs.

Two keys are held while a run is in flight: its schedule id (when it has
one) and its (project, crawl type) pair. A second acquisition on either
key is refused. Acquire never awaits between the check and the insert,
so under asyncio's cooperative scheduling no lock is needed.

State is process-local and starts empty; only one scheduler process may
run against a database.
"""

import logging

logger = logging.getLogger(__name__)

TypeKey = tuple[str, str]


class ConcurrencyGuard:
    """Tracks which schedules and (project, crawl type) pairs are running."""

    def __init__(self) -> None:
        self._schedules: set[int] = set()
        # (project_id, crawl_type) -> run id, None until the record exists
        self._types: dict[TypeKey, int | None] = {}

    def try_acquire(self, schedule_id: int | None, project_id: str, crawl_type: str) -> bool:
        """
        Claim both keys for a new run.

        Returns:
            False if either key is already held; nothing is claimed then.
        """
        type_key = (project_id, str(crawl_type))
        if schedule_id is not None and schedule_id in self._schedules:
            return False
        if type_key in self._types:
            return False

        if schedule_id is not None:
            self._schedules.add(schedule_id)
        self._types[type_key] = None
        return True

    def attach_run(self, project_id: str, crawl_type: str, run_id: int) -> None:
        """Remember the run id holding a (project, crawl type) key."""
        type_key = (project_id, str(crawl_type))
        if type_key in self._types:
            self._types[type_key] = run_id

    def holder(self, project_id: str, crawl_type: str) -> int | None:
        """Run id holding the key. None while the holder is still estimating."""
        return self._types.get((project_id, str(crawl_type)))

    def is_held(self, project_id: str, crawl_type: str) -> bool:
        return (project_id, str(crawl_type)) in self._types

    def is_schedule_held(self, schedule_id: int) -> bool:
        return schedule_id in self._schedules

    def release(self, schedule_id: int | None, project_id: str, crawl_type: str) -> None:
        """Drop both keys. Safe to call for keys that are not held."""
        if schedule_id is not None:
            self._schedules.discard(schedule_id)
        self._types.pop((project_id, str(crawl_type)), None)

    def __len__(self) -> int:
        return len(self._types)
