"""Unit tests for familycal_lite.calendar.lite_event_grouping."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from familycal_lite.calendar.lite_component_parser import parse_components
from familycal_lite.calendar.lite_event_grouping import group_events, is_cancelled

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def _vevents(make_ics, *blocks):
    return parse_components(make_ics(*blocks)).children_named("VEVENT")


def test_group_events_first_seen_order(make_ics) -> None:
    groups = group_events(
        _vevents(
            make_ics,
            ["UID:b", "DTSTART:20260105T090000Z"],
            ["UID:a", "DTSTART:20260105T090000Z"],
            ["UID:b", "RECURRENCE-ID:20260112T090000Z", "DTSTART:20260112T140000Z"],
        )
    )
    assert [g.uid for g in groups] == ["b", "a"]
    assert groups[0].has_master()
    assert len(groups[0].overrides()) == 1
    assert not groups[1].overrides()


def test_group_events_drops_missing_uid(make_ics) -> None:
    groups = group_events(_vevents(make_ics, ["DTSTART:20260105T090000Z"], ["UID:  ", "SUMMARY:x"]))
    assert groups == []


def test_group_events_override_without_master(make_ics) -> None:
    groups = group_events(_vevents(make_ics, ["UID:o", "RECURRENCE-ID:20260112T090000Z"]))
    assert len(groups) == 1
    assert not groups[0].has_master()
    assert len(groups[0].override_nodes) == 1


def test_group_events_duplicate_master_keeps_first(make_ics, caplog: pytest.LogCaptureFixture) -> None:
    groups = group_events(_vevents(make_ics, ["UID:d", "SUMMARY:first"], ["UID:d", "SUMMARY:second"]))
    assert groups[0].master.get_text("SUMMARY") == "first"
    assert "duplicate master" in caplog.text


@pytest.mark.parametrize(
    ("lines", "expected"),
    [
        (["STATUS:CANCELLED"], True),
        (["STATUS:cancelled"], True),
        (["STATUS:CONFIRMED"], False),
        (["SUMMARY:Canceled: Piano"], True),
        (["SUMMARY:Cancelled: Piano"], True),
        (["SUMMARY:Piano"], False),
        ([], False),
    ],
)
def test_is_cancelled(make_ics, lines, expected) -> None:
    node = _vevents(make_ics, ["UID:c", *lines])[0]
    assert is_cancelled(node) is expected


def test_master_is_cancelled(make_ics) -> None:
    groups = group_events(_vevents(make_ics, ["UID:c", "STATUS:CANCELLED"]))
    assert groups[0].master_is_cancelled()


def test_override_occurrence_times_decode_zones(make_ics) -> None:
    oslo = ZoneInfo("Europe/Oslo")
    groups = group_events(
        _vevents(
            make_ics,
            ["UID:z", "RECURRENCE-ID;TZID=Europe/Oslo:20260112T090000"],
            ["UID:z", "RECURRENCE-ID:20260119T090000"],
            ["UID:z", "RECURRENCE-ID;VALUE=DATE:20260126"],
            ["UID:z", "RECURRENCE-ID:garbage"],
        )
    )
    assert groups[0].override_occurrence_times(oslo) == {
        datetime(2026, 1, 12, 8, 0, tzinfo=UTC),
        datetime(2026, 1, 19, 8, 0, tzinfo=UTC),
        datetime(2026, 1, 26, 0, 0, tzinfo=UTC),
    }
