"""Renfe GTFS-RT feed aggregation: fetch, merge, dedup and cache."""

from trenes_api.services.feeds.aggregator import FeedAggregator
from trenes_api.services.feeds.cache import FeedCache, get_feed_cache, reset_feed_cache
from trenes_api.services.feeds.fetcher import FeedFetcher
from trenes_api.services.feeds.merge import dedup_alerts, merge
from trenes_api.services.feeds.resolver import derive_line, resolve_trip_id

__all__ = [
    "FeedAggregator",
    "FeedCache",
    "FeedFetcher",
    "dedup_alerts",
    "derive_line",
    "get_feed_cache",
    "merge",
    "reset_feed_cache",
    "resolve_trip_id",
]
