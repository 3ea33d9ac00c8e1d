"""Multi-calendar aggregation for familycal_lite."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, Optional

from familycal_lite.calendar.lite_exceptions import (
    LiteAggregationError,
    LiteICSFetchError,
    LiteICSTimeoutError,
    LiteMalformedDocumentError,
)
from familycal_lite.calendar.lite_models import (
    LiteAggregationResult,
    LiteCalendarEvent,
    LiteCalendarInfo,
    LiteCalendarSource,
    QueryWindow,
)
from familycal_lite.calendar.lite_rrule_expander import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_OCCURRENCES,
    RRuleExpanderConfig,
)
from familycal_lite.core.timezone_utils import now_utc

from .pipeline import build_source_events

logger = logging.getLogger(__name__)

FetchText = Callable[[LiteCalendarSource], Awaitable[str]]

_FROM_SETTINGS = object()


class CalendarAggregator:
    """Fetches every configured calendar concurrently and merges the events.

    Each source is isolated: a fetch failure, timeout or malformed document
    contributes zero events while the other sources are still returned.
    """

    def __init__(
        self,
        sources: Sequence[LiteCalendarSource],
        fetch_text: FetchText,
        *,
        max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        default_timezone: Optional[str] = None,
        fetch_timeout: Optional[float] = 30.0,
        window_past_days: int = 30,
        window_future_days: int = 180,
        time_provider: Callable[[], datetime] = now_utc,
    ):
        """Initialize aggregator.

        Args:
            sources: Configured calendars, in display order
            fetch_text: Async callable returning the raw ICS text of a source
            max_occurrences: Per-series expansion cap
            max_iterations: Per-series guard on rule candidates examined
            default_timezone: Zone for floating times
            fetch_timeout: Per-source fetch timeout in seconds, None to disable
            window_past_days: Default window reach into the past
            window_future_days: Default window reach into the future
            time_provider: Clock used for the default window and fetched_at
        """
        self.sources = tuple(sources)
        self._fetch_text = fetch_text
        self.max_occurrences = max_occurrences
        self.max_iterations = max_iterations
        self.default_timezone = default_timezone
        self.fetch_timeout = fetch_timeout
        self.window_past_days = window_past_days
        self.window_future_days = window_future_days
        self._time_provider = time_provider

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        fetch_text: FetchText,
        time_provider: Callable[[], datetime] = now_utc,
        *,
        fetch_timeout: Any = _FROM_SETTINGS,
    ) -> CalendarAggregator:
        """Build an aggregator from LiteAppSettings.

        The per-source timeout defaults to ``settings.source_fetch_timeout``,
        which covers every retry the fetcher may make. Pass ``fetch_timeout=None``
        when ``fetch_text`` already bounds itself, e.g. LiteFetchCache.get_text,
        which must stay uncancelled to fall back to its stale copy.
        """
        limits = RRuleExpanderConfig.from_settings(settings)
        if fetch_timeout is _FROM_SETTINGS:
            fetch_timeout = settings.source_fetch_timeout
        return cls(
            settings.sources,
            fetch_text,
            max_occurrences=limits.max_occurrences,
            max_iterations=limits.max_iterations,
            default_timezone=settings.default_timezone,
            fetch_timeout=fetch_timeout,
            window_past_days=settings.window_past_days,
            window_future_days=settings.window_future_days,
            time_provider=time_provider,
        )

    def default_window(self) -> QueryWindow:
        return QueryWindow.around(self._time_provider(), self.window_past_days, self.window_future_days)

    async def _fetch(self, source: LiteCalendarSource) -> str:
        if self.fetch_timeout is None:
            return await self._fetch_text(source)
        try:
            return await asyncio.wait_for(self._fetch_text(source), timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise LiteICSTimeoutError(
                f"Fetching {source.name!r} timed out after {self.fetch_timeout}s"
            ) from e

    async def _process_source(self, source: LiteCalendarSource, window: QueryWindow) -> list[LiteCalendarEvent]:
        raw_text = await self._fetch(source)
        return build_source_events(
            source,
            raw_text,
            window,
            max_occurrences=self.max_occurrences,
            max_iterations=self.max_iterations,
            default_timezone=self.default_timezone,
        )

    async def aggregate(self, window: Optional[QueryWindow] = None) -> LiteAggregationResult:
        """Aggregate all sources for ``window``.

        Args:
            window: Query window, defaults to the configured past/future reach

        Returns:
            LiteAggregationResult with events sorted by start

        Raises:
            LiteAggregationError: If the aggregation machinery itself fails
        """
        window = window or self.default_window()
        logger.debug(
            "Aggregating %d sources for %s .. %s", len(self.sources), window.start, window.end
        )

        try:
            tasks = [
                asyncio.create_task(self._process_source(source, window)) for source in self.sources
            ]
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except Exception as e:
            raise LiteAggregationError(f"Aggregation failed: {e}") from e

        events: list[LiteCalendarEvent] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, LiteICSFetchError):
                logger.warning("Source %r fetch failed: %s", source.name, result)
                continue
            if isinstance(result, LiteMalformedDocumentError):
                logger.warning("Source %r returned a malformed calendar: %s", source.name, result)
                continue
            if isinstance(result, BaseException):
                logger.error("Source %r failed: %s", source.name, result, exc_info=result)
                continue
            logger.debug("Source %r returned %d events", source.name, len(result))
            events.extend(result)

        events.sort(key=lambda event: event.start)
        events = [event for event in events if event.overlaps(window.start, window.end)]

        return LiteAggregationResult(
            calendars=[LiteCalendarInfo(name=s.name, color=s.color) for s in self.sources],
            events=events,
            fetched_at=self._time_provider(),
        )
