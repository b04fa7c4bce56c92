"""Time-bounded cache holding the latest feed snapshot."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from trenes_api.config import get_settings
from trenes_api.logging import get_logger
from trenes_api.services.feeds.aggregator import FeedAggregator
from trenes_api.services.feeds.models import FeedSnapshot

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 30.0

SnapshotLoader = Callable[[], Awaitable[FeedSnapshot]]


class FeedCache:
    """Single-slot snapshot cache with a fixed time-to-live.

    At most one refresh runs at a time: callers that miss while a refresh is
    in flight await the same task. The slot is only ever replaced, never
    mutated, so readers always see a complete snapshot.
    """

    def __init__(
        self,
        loader: SnapshotLoader,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: FeedSnapshot | None = None
        self._stored_at = 0.0
        self._inflight: asyncio.Task[FeedSnapshot] | None = None
        self._refresh_count = 0

    @property
    def snapshot(self) -> FeedSnapshot | None:
        return self._snapshot

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    @property
    def age_seconds(self) -> float | None:
        if self._snapshot is None:
            return None
        return self._clock() - self._stored_at

    def is_fresh(self) -> bool:
        age = self.age_seconds
        return age is not None and age < self.ttl_seconds

    async def get(self) -> FeedSnapshot:
        """Return the cached snapshot, refreshing it once it is stale."""
        snapshot = self._snapshot
        if snapshot is not None and self.is_fresh():
            return snapshot
        return await self.refresh()

    async def refresh(self) -> FeedSnapshot:
        """Load a new snapshot and store it, joining any refresh already running.

        The shared load is shielded: a cancelled caller stops waiting but the
        load keeps running for everyone else.
        """
        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._loader())
            task.add_done_callback(self._on_load_done)
            self._inflight = task
        return await asyncio.shield(task)

    def _on_load_done(self, task: asyncio.Task[FeedSnapshot]) -> None:
        # Runs before any waiter resumes, so the slot never holds a finished task.
        if self._inflight is task:
            self._inflight = None
        if task.cancelled():
            logger.warning("Feed cache refresh cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Feed cache refresh failed", exc_info=exc)
            return
        self._store(task.result())

    def _store(self, snapshot: FeedSnapshot) -> None:
        self._snapshot = snapshot
        self._stored_at = self._clock()
        self._refresh_count += 1
        logger.debug("Feed cache refreshed", refresh_count=self._refresh_count)


_cache_instance: FeedCache | None = None


def get_feed_cache() -> FeedCache:
    """Get or create the process-wide cache."""
    global _cache_instance
    if _cache_instance is None:
        settings = get_settings()
        _cache_instance = FeedCache(
            FeedAggregator().build,
            ttl_seconds=settings.cache_ttl_seconds,
        )
    return _cache_instance


def reset_feed_cache() -> None:
    """Reset the singleton (for testing)."""
    global _cache_instance
    _cache_instance = None
