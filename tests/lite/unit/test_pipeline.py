"""Unit tests for familycal_lite.domain.pipeline.build_source_events."""

from datetime import UTC, datetime

import pytest

from familycal_lite.calendar.lite_exceptions import LiteMalformedDocumentError
from familycal_lite.calendar.lite_models import QueryWindow
from familycal_lite.domain.pipeline import build_source_events

pytestmark = [pytest.mark.unit, pytest.mark.fast]

JANUARY = QueryWindow(start=datetime(2026, 1, 1, tzinfo=UTC), end=datetime(2026, 2, 1, tzinfo=UTC))


def test_weekly_series(family_source, sample_ics_weekly: str) -> None:
    events = build_source_events(family_source, sample_ics_weekly, JANUARY)
    assert [e.start.day for e in events] == [5, 12, 19]
    assert all(e.calendar == "family" and e.color == "#3B82F6" for e in events)
    assert events[0].location == "Community pool"


def test_escaped_description(family_source, sample_ics_simple: str) -> None:
    (event,) = build_source_events(family_source, sample_ics_simple, JANUARY)
    assert event.description == "Bring insurance card, and forms"


def test_folded_lines_are_joined(family_source, make_ics) -> None:
    text = make_ics(["UID:f", "DTSTART:20260110T090000Z", "SUMMARY:Parent-teacher con", " ference"])
    (event,) = build_source_events(family_source, text, JANUARY)
    assert event.title == "Parent-teacher conference"


def test_non_vevent_components_are_ignored(family_source) -> None:
    text = "\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VTIMEZONE",
            "TZID:Europe/Oslo",
            "BEGIN:STANDARD",
            "DTSTART:19701025T030000",
            "END:STANDARD",
            "END:VTIMEZONE",
            "BEGIN:VTODO",
            "UID:todo",
            "DTSTART:20260110T090000Z",
            "END:VTODO",
            "BEGIN:VEVENT",
            "UID:e",
            "DTSTART;TZID=Europe/Oslo:20260110T090000",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )
    (event,) = build_source_events(family_source, text, JANUARY)
    assert event.start == datetime(2026, 1, 10, 8, 0, tzinfo=UTC)


def test_floating_times_use_calendar_timezone(family_source, make_ics) -> None:
    text = make_ics(["UID:f", "DTSTART:20260110T090000"], calendar_props=("X-WR-TIMEZONE:America/New_York",))
    (event,) = build_source_events(family_source, text, JANUARY, default_timezone="Europe/Oslo")
    assert event.start == datetime(2026, 1, 10, 14, 0, tzinfo=UTC)


def test_floating_times_use_configured_default(family_source, make_ics) -> None:
    text = make_ics(["UID:f", "DTSTART:20260110T090000"])
    (event,) = build_source_events(family_source, text, JANUARY, default_timezone="Europe/Oslo")
    assert event.start == datetime(2026, 1, 10, 8, 0, tzinfo=UTC)


def test_max_occurrences_is_passed_through(family_source, make_ics) -> None:
    text = make_ics(["UID:d", "DTSTART:20260101T090000Z", "RRULE:FREQ=DAILY"])
    assert len(build_source_events(family_source, text, JANUARY, max_occurrences=7)) == 7


def test_malformed_document_raises(family_source) -> None:
    with pytest.raises(LiteMalformedDocumentError):
        build_source_events(family_source, "BEGIN:VCALENDAR\nBEGIN:VEVENT\nUID:x\n", JANUARY)


def test_feed_with_byte_order_mark(family_source, sample_ics_weekly: str) -> None:
    events = build_source_events(family_source, "\ufeff" + sample_ics_weekly, JANUARY)
    assert len(events) == 3


def test_expansion_guard_is_passed_through(family_source, make_ics) -> None:
    text = make_ics(["UID:m", "DTSTART:20000101T000000Z", "RRULE:FREQ=MINUTELY"])
    assert build_source_events(family_source, text, JANUARY, max_iterations=50) == []
