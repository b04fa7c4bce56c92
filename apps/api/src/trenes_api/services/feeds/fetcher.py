"""GTFS-RT JSON feed fetcher with retry and backoff."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import httpx

from trenes_api.logging import get_logger
from trenes_api.services.feeds.models import FeedResult

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_MAX_RETRIES = 1
DEFAULT_BACKOFF_BASE = 2.0


class FeedFetchError(Exception):
    """Raised internally when a single fetch attempt cannot produce a feed body."""


class FeedFetcher:
    """Fetches GTFS-RT feeds published as JSON.

    ``fetch`` never raises for upstream problems: every failure is converted
    into ``FeedResult.unavailable`` and logged.
    """

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ) -> None:
        self.timeout_sec = timeout_sec
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base

    async def fetch(self, url: str, feed_type: str) -> FeedResult:
        """Download and parse one feed.

        Args:
            url: Feed URL.
            feed_type: Label for logging and for the returned result.

        Returns:
            ``FeedResult.ok`` with the feed's entity list, or
            ``FeedResult.unavailable`` with the last error.
        """
        if not url or not url.strip():
            logger.warning("Feed URL not configured", feed_type=feed_type)
            return FeedResult.unavailable(feed_type, "feed URL not configured")

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                body = await self._get_json(url)
                entities = _extract_entities(body)
                logger.debug(
                    "Feed downloaded",
                    feed_type=feed_type,
                    attempt=attempt + 1,
                    entity_count=len(entities),
                )
                return FeedResult.ok(feed_type, entities)

            except (httpx.HTTPStatusError, httpx.RequestError, FeedFetchError) as exc:
                last_error = exc
                if attempt < self.max_retries - 1:
                    delay = self.backoff_base ** (attempt + 1)
                    logger.warning(
                        "Feed fetch failed, retrying",
                        feed_type=feed_type,
                        url=url,
                        attempt=attempt + 1,
                        delay_sec=delay,
                        error=str(exc),
                    )
                    await asyncio.sleep(delay)

        error = f"Failed to fetch {feed_type} after {self.max_retries} attempts: {last_error}"
        logger.error(error, feed_type=feed_type, url=url, error=str(last_error))
        return FeedResult.unavailable(feed_type, str(last_error))

    async def _get_json(self, url: str) -> Any:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_sec),
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            raise_result = response.raise_for_status()
            if inspect.isawaitable(raise_result):
                await raise_result
            try:
                return response.json()
            except ValueError as exc:
                msg = "Response body is not valid JSON"
                raise FeedFetchError(msg) from exc


def _extract_entities(body: Any) -> list[dict[str, Any]]:
    """Return the entity list of a feed body, skipping anything not shaped like an entity."""
    if not isinstance(body, dict):
        msg = f"Unexpected feed body type: {type(body).__name__}"
        raise FeedFetchError(msg)

    entities = body.get("entity")
    if not isinstance(entities, list):
        return []
    return [ent for ent in entities if isinstance(ent, dict)]
