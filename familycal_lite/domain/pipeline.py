"""Per-source event pipeline for familycal_lite.

Runs the synchronous stages for one calendar's raw ICS text:

    unfold -> parse components -> group by UID -> expand + materialize

Usage:
    events = build_source_events(source, raw_text, window)
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from familycal_lite.calendar.lite_component_parser import parse_components
from familycal_lite.calendar.lite_datetime_utils import calendar_timezone
from familycal_lite.calendar.lite_event_grouping import group_events
from familycal_lite.calendar.lite_materializer import MaterializeContext, materialize_events
from familycal_lite.calendar.lite_models import LiteCalendarEvent, LiteCalendarSource, QueryWindow
from familycal_lite.calendar.lite_rrule_expander import DEFAULT_MAX_ITERATIONS, DEFAULT_MAX_OCCURRENCES
from familycal_lite.calendar.lite_unfolder import unfold_lines

logger = logging.getLogger(__name__)


def build_source_events(
    source: LiteCalendarSource,
    raw_text: str,
    window: QueryWindow,
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    default_timezone: Optional[str] = None,
) -> list[LiteCalendarEvent]:
    """Turn one calendar's ICS text into in-window events.

    Args:
        source: Calendar identity (name and color are stamped on every event)
        raw_text: Raw ICS document
        window: Query window
        max_occurrences: Per-series expansion cap
        max_iterations: Per-series guard on rule candidates examined
        default_timezone: Configured zone for floating times

    Returns:
        Events in production order (not sorted)

    Raises:
        LiteMalformedDocumentError: If the document structure is unusable
    """
    started = time.perf_counter()

    root = parse_components(unfold_lines(raw_text))
    vevents = [child for child in root.children if child.name == "VEVENT"]
    groups = group_events(vevents)

    ctx = MaterializeContext(
        calendar=source.name,
        color=source.color,
        window_start=window.start,
        window_end=window.end,
        default_tz=calendar_timezone(root, default_timezone),
        max_occurrences=max_occurrences,
        max_iterations=max_iterations,
    )
    events = materialize_events(groups, ctx)

    logger.debug(
        "Source %r: %d VEVENTs, %d UID groups, %d events in window (%.1fms)",
        source.name,
        len(vevents),
        len(groups),
        len(events),
        (time.perf_counter() - started) * 1000,
    )
    return events
