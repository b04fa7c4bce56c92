"""Fetch -> merge -> dedup pipeline producing feed snapshots."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Callable

from trenes_api.config import get_settings
from trenes_api.logging import get_logger
from trenes_api.services.feeds.fetcher import FeedFetcher
from trenes_api.services.feeds.merge import dedup_alerts, merge
from trenes_api.services.feeds.models import (
    FEED_ALERTS,
    FEED_TRIP_UPDATES,
    FEED_VEHICLE_POSITIONS,
    FeedSnapshot,
)

logger = get_logger(__name__)


class FeedAggregator:
    """Builds a ``FeedSnapshot`` from the three upstream feeds.

    Usage:
        aggregator = FeedAggregator()
        snapshot = await aggregator.build()
    """

    def __init__(
        self,
        fetcher: FeedFetcher | None = None,
        feed_urls: dict[str, str] | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        settings = get_settings()
        self._fetcher = fetcher or FeedFetcher(
            timeout_sec=settings.feed_fetch_timeout_sec,
            max_retries=settings.feed_max_retries,
            backoff_base=settings.feed_backoff_base,
        )
        self._feed_urls = feed_urls or {
            FEED_VEHICLE_POSITIONS: settings.vehicle_positions_url,
            FEED_TRIP_UPDATES: settings.trip_updates_url,
            FEED_ALERTS: settings.alerts_url,
        }
        self._wall_clock = wall_clock

    async def build(self) -> FeedSnapshot:
        """Run one refresh cycle.

        The three fetches are issued concurrently; a failed feed contributes
        no entities.
        """
        cycle_id = str(uuid.uuid4())[:8]
        started = time.monotonic()

        vehicles, updates, alerts = await asyncio.gather(
            *(
                self._fetcher.fetch(self._feed_urls.get(feed_type, ""), feed_type)
                for feed_type in (FEED_VEHICLE_POSITIONS, FEED_TRIP_UPDATES, FEED_ALERTS)
            )
        )

        merged = merge(vehicles.entities, updates.entities, alerts.entities)
        unique_alerts = dedup_alerts(merged.raw_alerts)

        snapshot = FeedSnapshot(
            trains=tuple(merged.trains),
            alerts=tuple(unique_alerts),
            fetched_at=self._wall_clock(),
            feeds={result.feed_type: result for result in (vehicles, updates, alerts)},
        )

        unavailable = [name for name, result in snapshot.feeds.items() if not result.is_available]
        logger.info(
            "Feed snapshot built",
            cycle_id=cycle_id,
            trains=len(snapshot.trains),
            alerts=len(snapshot.alerts),
            duplicate_alerts=len(merged.raw_alerts) - len(unique_alerts),
            unavailable_feeds=unavailable,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return snapshot
