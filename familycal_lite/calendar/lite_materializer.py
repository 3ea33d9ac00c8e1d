"""Turn grouped VEVENTs into concrete LiteCalendarEvent occurrences - familycal_lite."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Optional

from .lite_component_parser import ComponentNode
from .lite_datetime_utils import (
    DecodedDateTime,
    decode_datetime_property,
    decode_duration,
    to_epoch_millis,
)
from .lite_event_grouping import EventGroup, is_cancelled
from .lite_exceptions import LiteMissingRequiredFieldError, LiteRRuleParseError
from .lite_models import LiteCalendarEvent
from .lite_rrule_expander import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_OCCURRENCES,
    expand_occurrences,
    has_recurrence,
)

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"
ALL_DAY_LENGTH = timedelta(days=1)


@dataclass(frozen=True)
class MaterializeContext:
    """Everything needed to emit events for one calendar and one window."""

    calendar: str
    color: str
    window_start: datetime
    window_end: datetime
    default_tz: tzinfo = UTC
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.window_end and end > self.window_start


def _decode_start(node: ComponentNode, default_tz: tzinfo) -> DecodedDateTime:
    prop = node.get_first("DTSTART")
    if prop is None or not prop.value.strip():
        raise LiteMissingRequiredFieldError("VEVENT has no DTSTART", field_name="DTSTART")
    try:
        return decode_datetime_property(prop, default_tz)
    except ValueError as e:
        raise LiteMissingRequiredFieldError(
            f"Invalid DTSTART {prop.value!r}", field_name="DTSTART"
        ) from e


def _event_duration(
    node: ComponentNode,
    start: DecodedDateTime,
    default_tz: tzinfo,
    fallback: Optional[timedelta] = None,
) -> timedelta:
    """DTEND beats DURATION beats ``fallback``; all-day defaults to one day."""
    dtend = node.get_first("DTEND")
    if dtend is not None:
        try:
            end = decode_datetime_property(dtend, default_tz)
        except ValueError:
            logger.debug("Ignoring invalid DTEND %r", dtend.value)
        else:
            length = end.utc - start.utc
            if length >= timedelta(0):
                return length
            logger.debug("DTEND before DTSTART for UID %s, treating as zero length", node.get_value("UID"))
            return timedelta(0)

    duration = decode_duration(node.get_value("DURATION"))
    if duration is not None and duration >= timedelta(0):
        return duration

    if fallback is not None:
        return fallback
    return ALL_DAY_LENGTH if start.all_day else timedelta(0)


def _build_event(
    uid: str,
    node: ComponentNode,
    start: datetime,
    duration: timedelta,
    all_day: bool,
    ctx: MaterializeContext,
) -> Optional[LiteCalendarEvent]:
    end = start + duration
    if not ctx.overlaps(start, end):
        return None

    return LiteCalendarEvent(
        id=f"{ctx.calendar}-{uid}-{to_epoch_millis(start)}",
        title=(node.get_text("SUMMARY") or "").strip() or UNTITLED,
        start=start,
        end=end,
        all_day=all_day,
        calendar=ctx.calendar,
        color=ctx.color,
        location=node.get_text("LOCATION") or None,
        description=node.get_text("DESCRIPTION") or None,
    )


def _master_occurrences(
    group: EventGroup,
    master: ComponentNode,
    start: DecodedDateTime,
    duration: timedelta,
    ctx: MaterializeContext,
) -> list[datetime]:
    overridden = group.override_occurrence_times(ctx.default_tz)

    if not has_recurrence(master):
        return [] if start.utc in overridden else [start.utc]

    try:
        return list(
            expand_occurrences(
                master,
                ctx.window_start,
                ctx.window_end,
                duration=duration,
                excluded=overridden,
                max_occurrences=ctx.max_occurrences,
                max_iterations=ctx.max_iterations,
                default_tz=ctx.default_tz,
            )
        )
    except LiteRRuleParseError as e:
        logger.warning(
            "Bad recurrence rule for UID %s in %s, using single occurrence: %s",
            group.uid,
            ctx.calendar,
            e,
        )
        return [] if start.utc in overridden else [start.utc]


def materialize_group(group: EventGroup, ctx: MaterializeContext) -> list[LiteCalendarEvent]:
    """Emit the in-window occurrences of one UID group.

    A cancelled master drops the whole series including its overrides; a
    cancelled override drops only its own slot. Events that cannot be placed
    on the timeline are skipped.

    Args:
        group: Master and overrides sharing a UID
        ctx: Calendar identity, window and expansion limits

    Returns:
        Events in the order they were produced (master occurrences first)
    """
    events: list[LiteCalendarEvent] = []
    master_duration: Optional[timedelta] = None

    if group.master is not None:
        if group.master_is_cancelled():
            logger.debug("Skipping cancelled series %s in %s", group.uid, ctx.calendar)
            return events
        try:
            start = _decode_start(group.master, ctx.default_tz)
            master_duration = _event_duration(group.master, start, ctx.default_tz)
            for occurrence in _master_occurrences(group, group.master, start, master_duration, ctx):
                event = _build_event(group.uid, group.master, occurrence, master_duration, start.all_day, ctx)
                if event is not None:
                    events.append(event)
        except LiteMissingRequiredFieldError as e:
            logger.debug("Skipping master %s in %s: %s", group.uid, ctx.calendar, e.message)

    for override in group.overrides():
        if is_cancelled(override):
            continue
        try:
            start = _decode_start(override, ctx.default_tz)
        except LiteMissingRequiredFieldError as e:
            logger.debug("Skipping override of %s in %s: %s", group.uid, ctx.calendar, e.message)
            continue
        duration = _event_duration(override, start, ctx.default_tz, fallback=master_duration)
        event = _build_event(group.uid, override, start.utc, duration, start.all_day, ctx)
        if event is not None:
            events.append(event)

    return events


def materialize_events(groups: Iterable[EventGroup], ctx: MaterializeContext) -> list[LiteCalendarEvent]:
    """Materialize every group of one calendar."""
    events: list[LiteCalendarEvent] = []
    for group in groups:
        events.extend(materialize_group(group, ctx))
    return events
