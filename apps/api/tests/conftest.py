"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from trenes_api.main import app
from trenes_api.services.feeds.aggregator import FeedAggregator
from trenes_api.services.feeds.cache import FeedCache, get_feed_cache, reset_feed_cache

from fixtures.feed_fixture import FEED_URLS, StubFetcher


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_cache(clock: FakeClock) -> Callable[..., tuple[FeedCache, StubFetcher]]:
    """Factory building a cache over a stub fetcher and the fake clock."""

    def _make(**stub_kwargs: Any) -> tuple[FeedCache, StubFetcher]:
        fetcher = StubFetcher(**stub_kwargs)
        aggregator = FeedAggregator(
            fetcher=fetcher,  # type: ignore[arg-type]
            feed_urls=FEED_URLS,
            wall_clock=lambda: 1_700_000_000.0 + clock.now,
        )
        return FeedCache(aggregator.build, ttl_seconds=30, clock=clock), fetcher

    return _make


@pytest.fixture
def override_cache() -> Generator[Callable[[FeedCache], None], None, None]:
    """Install a cache as the app's feed cache dependency for one test."""

    def _install(cache: FeedCache) -> None:
        app.dependency_overrides[get_feed_cache] = lambda: cache

    yield _install
    app.dependency_overrides.pop(get_feed_cache, None)
    reset_feed_cache()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
