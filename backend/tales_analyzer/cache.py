"""
In-process analysis cache keyed by seed URL.

Entries never expire; the freshness window is only reported back to the
caller. InFlightRuns makes concurrent first-time requests for the same URL
share one crawl instead of each running their own.
"""

import asyncio
import logging
import time

from tales_analyzer.models import AnalysisReport, CacheEntry

logger = logging.getLogger(__name__)


class AnalysisCache:
    def __init__(self, freshness_window_seconds: float = 86400, clock=time.time):
        self.freshness_window_seconds = freshness_window_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, key: str, data: AnalysisReport, enriched: bool = False) -> CacheEntry:
        """Store data for key, replacing any older entry (last write wins)."""
        entry = CacheEntry(data=data, timestamp=self._clock(), enriched=enriched)
        self._entries[key] = entry
        return entry

    def age_seconds(self, entry: CacheEntry) -> float:
        return entry.age_seconds(self._clock())

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.is_fresh(self.freshness_window_seconds, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries


class InFlightRuns:
    """At most one running task per key; later callers await the same task."""

    def __init__(self, logger=logger):
        self._tasks: dict[str, asyncio.Task] = {}
        self.log = logger

    def __contains__(self, key):
        return key in self._tasks

    async def run(self, key: str, factory):
        task = self._tasks.get(key)
        if task is not None:
            self.log.info(f"Joining in-flight run for {key}")
            return await asyncio.shield(task)

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._tasks.get(key) is task:
                del self._tasks[key]
