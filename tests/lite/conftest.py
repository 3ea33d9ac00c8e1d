import os
from collections.abc import Generator
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from familycal_lite.calendar.lite_models import LiteAppSettings, LiteCalendarSource

_ENV_KEYS = (
    "FAMILYCAL_TEST_TIME",
    "FAMILYCAL_DEBUG",
    "FAMILYCAL_LOG_LEVEL",
    "FAMILYCAL_WEB_HOST",
    "FAMILYCAL_WEB_PORT",
    "FAMILYCAL_WINDOW_PAST_DAYS",
    "FAMILYCAL_WINDOW_FUTURE_DAYS",
    "FAMILYCAL_MAX_OCCURRENCES",
    "FAMILYCAL_MAX_ITERATIONS",
    "FAMILYCAL_CACHE_TTL",
    "FAMILYCAL_REQUEST_TIMEOUT",
    "FAMILYCAL_MAX_RETRIES",
    "FAMILYCAL_RETRY_BACKOFF",
    "FAMILYCAL_DEFAULT_TIMEZONE",
    "API_SECRET",
)


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object used across lite tests.

    Provides a minimal, deterministic configuration for the fetcher.
    Fields:
      - request_timeout: HTTP read timeout in seconds
      - max_retries: retry attempts for HTTP fetches
      - retry_backoff_factor: 0 so retries never sleep
    """
    return SimpleNamespace(
        request_timeout=5,
        max_retries=2,
        retry_backoff_factor=0.0,
    )


@pytest.fixture
def family_source() -> LiteCalendarSource:
    """Single calendar source used by pipeline and materializer tests."""
    return LiteCalendarSource(name="family", url="https://calendars.test/family.ics", color="#3B82F6")


@pytest.fixture
def app_settings() -> LiteAppSettings:
    """Two configured sources, no API secret, zero retries."""
    return LiteAppSettings(
        sources=(
            LiteCalendarSource(name="family", url="https://calendars.test/family.ics", color="#3B82F6"),
            LiteCalendarSource(name="school", url="https://calendars.test/school.ics", color="#22C55E"),
        ),
        configured_slots={1: True, 2: True, 3: False, 4: False},
        max_retries=0,
        request_timeout=5,
    )


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure configuration environment variables are cleared between tests.

    Tests set FAMILYCAL_TEST_TIME to freeze the clock and CAL_<n>_* to
    configure sources; neither may leak into the next test. Values written
    by ConfigManager.load_env_file bypass monkeypatch and are popped after
    the test.
    """
    keys = [*_ENV_KEYS] + [f"CAL_{n}_{suffix}" for n in range(1, 9) for suffix in ("URL", "NAME", "COLOR")]
    for key in keys:
        monkeypatch.delenv(key, raising=False)
    yield
    for key in keys:
        os.environ.pop(key, None)


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def make_ics() -> Callable[..., str]:
    """
    Return a builder for ICS documents.

    Returns:
        Callable ``builder(*vevents, calendar_props=())`` where each vevent is
        a list of content lines (without BEGIN/END:VEVENT). Lines are joined
        with CRLF as feeds deliver them.
    """

    def builder(*vevents: list[str], calendar_props: tuple[str, ...] = ()) -> str:
        lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//FamilyCal Test//EN", *calendar_props]
        for vevent in vevents:
            lines.append("BEGIN:VEVENT")
            lines.extend(vevent)
            lines.append("END:VEVENT")
        lines.append("END:VCALENDAR")
        return "\r\n".join(lines) + "\r\n"

    return builder


@pytest.fixture
def sample_ics_weekly() -> str:
    """
    Return an ICS string with a weekly series.

    Returns:
        RFC 5545 compliant ICS string:
        - Event: "Swim practice" Mondays 09:00-10:00 UTC from 2026-01-05
        - RRULE:FREQ=WEEKLY;COUNT=3
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//FamilyCal Test//EN
BEGIN:VEVENT
UID:swim@familycal.test
DTSTART:20260105T090000Z
DTEND:20260105T100000Z
SUMMARY:Swim practice
LOCATION:Community pool
RRULE:FREQ=WEEKLY;COUNT=3
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with a single event.

    Returns:
        RFC 5545 compliant ICS string with one event:
        - Event: "Dentist" on 2026-01-10 15:00-16:00 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//FamilyCal Test//EN
BEGIN:VEVENT
UID:dentist@familycal.test
DTSTART:20260110T150000Z
DTEND:20260110T160000Z
SUMMARY:Dentist
DESCRIPTION:Bring insurance card\\, and forms
END:VEVENT
END:VCALENDAR
"""
