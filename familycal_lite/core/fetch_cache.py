"""In-memory TTL cache for raw ICS text, with stale fallback - familycal_lite."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from familycal_lite.calendar.lite_exceptions import LiteICSFetchError, LiteICSTimeoutError
from familycal_lite.calendar.lite_models import LiteCalendarSource
from familycal_lite.core.config_manager import get_config_value

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class CacheEntry:
    text: str
    fetched_at: float  # monotonic seconds

    def age(self, now: float) -> float:
        return now - self.fetched_at


class LiteFetchCache:
    """Caches fetched ICS text per URL.

    - fresh entry (younger than the TTL): returned without fetching
    - otherwise: fetch and store
    - fetch failure or timeout: the previous text is returned regardless of
      age, or the error is re-raised when nothing was cached

    Concurrent requests for the same URL share one fetch.
    """

    def __init__(
        self,
        fetch_text: Callable[[LiteCalendarSource], Awaitable[str]],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        fetch_timeout: Optional[float] = None,
    ):
        """Initialize fetch cache.

        Args:
            fetch_text: Underlying async fetcher, usually LiteICSFetcher.fetch_text
            ttl_seconds: Freshness lifetime of an entry
            clock: Monotonic clock, replaceable in tests
            fetch_timeout: Bound on one underlying fetch in seconds, None to disable
        """
        self._fetch_text = fetch_text
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.fetch_timeout = fetch_timeout
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Any, fetch_text: Callable[[LiteCalendarSource], Awaitable[str]]) -> LiteFetchCache:
        return cls(
            fetch_text,
            ttl_seconds=get_config_value(settings, "cache_ttl_seconds", DEFAULT_TTL_SECONDS),
            fetch_timeout=get_config_value(settings, "source_fetch_timeout"),
        )

    def _lock_for(self, url: str) -> asyncio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = self._locks[url] = asyncio.Lock()
        return lock

    def peek(self, url: str) -> Optional[CacheEntry]:
        return self._entries.get(url)

    def invalidate(self, url: Optional[str] = None) -> None:
        """Drop one URL, or everything when ``url`` is None."""
        if url is None:
            self._entries.clear()
        else:
            self._entries.pop(url, None)

    async def _bounded_fetch(self, source: LiteCalendarSource) -> str:
        if self.fetch_timeout is None:
            return await self._fetch_text(source)
        try:
            return await asyncio.wait_for(self._fetch_text(source), timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise LiteICSTimeoutError(
                f"Fetching {source.name!r} timed out after {self.fetch_timeout}s"
            ) from e

    async def get_text(self, source: LiteCalendarSource) -> str:
        """Return ICS text for ``source``, fetching only when the entry is stale.

        Raises:
            LiteICSFetchError: If the fetch fails and nothing is cached
        """
        async with self._lock_for(source.url):
            entry = self._entries.get(source.url)
            now = self._clock()
            if entry is not None and entry.age(now) < self.ttl_seconds:
                logger.debug("Cache hit for %r (age %.0fs)", source.name, entry.age(now))
                return entry.text

            try:
                text = await self._bounded_fetch(source)
            except LiteICSFetchError as e:
                if entry is None:
                    raise
                logger.warning(
                    "Fetch failed for %r, serving cached copy from %.0fs ago: %s",
                    source.name,
                    entry.age(now),
                    e,
                )
                return entry.text

            self._entries[source.url] = CacheEntry(text=text, fetched_at=self._clock())
            return text
