"""Tests for the snapshot cache."""

from __future__ import annotations

import asyncio

import pytest

from trenes_api.services.feeds.cache import FeedCache, get_feed_cache, reset_feed_cache
from trenes_api.services.feeds.models import FeedSnapshot

from fixtures.feed_fixture import alert_entity, vehicle_entity


class CountingLoader:
    """Loader returning a new snapshot per call, optionally gated on an event."""

    def __init__(self, gate: asyncio.Event | None = None) -> None:
        self.calls = 0
        self.gate = gate

    async def __call__(self) -> FeedSnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return FeedSnapshot(fetched_at=float(self.calls))


class TestFeedCache:
    """Unit tests for FeedCache."""

    @pytest.mark.asyncio
    async def test_empty_cache_refreshes(self, clock) -> None:  # type: ignore[no-untyped-def]
        loader = CountingLoader()
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        assert cache.snapshot is None
        assert cache.age_seconds is None

        snapshot = await cache.get()

        assert loader.calls == 1
        assert cache.snapshot is snapshot
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, clock) -> None:  # type: ignore[no-untyped-def]
        loader = CountingLoader()
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        first = await cache.get()
        clock.advance(29.9)
        second = await cache.get()

        assert second is first
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_after_ttl(self, clock) -> None:  # type: ignore[no-untyped-def]
        loader = CountingLoader()
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        first = await cache.get()
        clock.advance(30)
        second = await cache.get()

        assert second is not first
        assert second.fetched_at > first.fetched_at
        assert loader.calls == 2
        assert cache.age_seconds == 0

    @pytest.mark.asyncio
    async def test_explicit_refresh_replaces_snapshot(self, clock) -> None:  # type: ignore[no-untyped-def]
        loader = CountingLoader()
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        first = await cache.get()
        second = await cache.refresh()

        assert second is not first
        assert cache.snapshot is second

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_load(self, clock) -> None:  # type: ignore[no-untyped-def]
        gate = asyncio.Event()
        loader = CountingLoader(gate=gate)
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        tasks = [asyncio.create_task(cache.get()) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert loader.calls == 1
        assert all(result is results[0] for result in results)
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_failed_load_keeps_previous_snapshot(self, clock) -> None:  # type: ignore[no-untyped-def]
        calls = 0

        async def flaky() -> FeedSnapshot:
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("boom")
            return FeedSnapshot(fetched_at=float(calls))

        cache = FeedCache(flaky, ttl_seconds=30, clock=clock)
        first = await cache.get()
        clock.advance(31)

        with pytest.raises(RuntimeError):
            await cache.get()

        assert cache.snapshot is first
        third = await cache.get()
        assert third.fetched_at == 3.0

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_break_refresh(self, clock) -> None:  # type: ignore[no-untyped-def]
        gate = asyncio.Event()
        loader = CountingLoader(gate=gate)
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        request = asyncio.create_task(cache.get())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        gate.set()
        snapshot = await asyncio.wait_for(cache.get(), 1)

        assert loader.calls == 1
        assert cache.snapshot is snapshot
        assert cache._inflight is None

    @pytest.mark.asyncio
    async def test_cancelled_load_is_not_reused(self, clock) -> None:  # type: ignore[no-untyped-def]
        gate = asyncio.Event()
        loader = CountingLoader(gate=gate)
        cache = FeedCache(loader, ttl_seconds=30, clock=clock)

        request = asyncio.create_task(cache.get())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert cache._inflight is not None
        cache._inflight.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        assert cache._inflight is None
        assert cache.snapshot is None

        gate.set()
        snapshot = await asyncio.wait_for(cache.get(), 1)

        assert loader.calls == 2
        assert cache.snapshot is snapshot


class TestCachedPipeline:
    """Cache over the real aggregator with a stub fetcher."""

    @pytest.mark.asyncio
    async def test_one_fetch_cycle_per_window(self, make_cache, clock) -> None:  # type: ignore[no-untyped-def]
        cache, fetcher = make_cache(
            vehicles=[vehicle_entity(trip_id="3061D10019C5")],
            alerts=[alert_entity()],
        )

        first = await cache.get()
        clock.advance(10)
        second = await cache.get()

        assert second is first
        assert len(fetcher.calls) == 3

        clock.advance(25)
        third = await cache.get()

        assert len(fetcher.calls) == 6
        assert third.timestamp_ms > first.timestamp_ms
        assert [t.trip_id for t in third.trains] == ["3061D10019C5"]


def test_singleton_lifecycle() -> None:
    reset_feed_cache()
    cache = get_feed_cache()

    assert get_feed_cache() is cache
    assert cache.ttl_seconds == 30

    reset_feed_cache()
    assert get_feed_cache() is not cache
    reset_feed_cache()
