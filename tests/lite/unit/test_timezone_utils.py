"""Unit tests for familycal_lite.core.timezone_utils."""

import datetime
from zoneinfo import ZoneInfo

import pytest

from familycal_lite.core.timezone_utils import (
    TimeProvider,
    TimezoneResolver,
    get_default_timezone,
    normalize_timezone_name,
    now_utc,
    resolve_zone,
    windows_tz_to_iana,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestTimezoneResolver:
    """Tests for TZID normalization."""

    @pytest.mark.parametrize(
        ("tz_name", "expected"),
        [
            ("Pacific Standard Time", "America/Los_Angeles"),
            ("W. Europe Standard Time", "Europe/Berlin"),
            ("US/Eastern", "America/New_York"),
            ("Etc/UTC", "UTC"),
            ("Europe/Oslo", "Europe/Oslo"),
            ('"Europe/Oslo"', "Europe/Oslo"),
            ("  Asia/Tokyo  ", "Asia/Tokyo"),
        ],
    )
    def test_normalize_known_names(self, tz_name: str, expected: str) -> None:
        assert TimezoneResolver().normalize(tz_name) == expected

    @pytest.mark.parametrize("tz_name", [None, "", "   ", "Invalid/Timezone", "Customized Time Zone"])
    def test_normalize_unknown_names_return_none(self, tz_name) -> None:
        assert normalize_timezone_name(tz_name) is None


def test_windows_tz_to_iana() -> None:
    assert windows_tz_to_iana("Mountain Standard Time") == "America/Denver"
    assert windows_tz_to_iana("Nonexistent Standard Time") is None


def test_resolve_zone_returns_utc_singleton() -> None:
    assert resolve_zone("UTC") is datetime.UTC
    assert resolve_zone("GMT") is datetime.UTC


def test_resolve_zone_returns_zoneinfo() -> None:
    assert resolve_zone("Europe/Oslo") == ZoneInfo("Europe/Oslo")
    assert resolve_zone("Not/AZone") is None


def test_get_default_timezone_falls_back_to_utc(caplog: pytest.LogCaptureFixture) -> None:
    assert get_default_timezone("Not/AZone") is datetime.UTC
    assert "falling back to UTC" in caplog.text


def test_get_default_timezone_defaults() -> None:
    assert get_default_timezone(None) is datetime.UTC
    assert get_default_timezone("America/Chicago") == ZoneInfo("America/Chicago")


class TestTimeProvider:
    """Tests for the clock with FAMILYCAL_TEST_TIME override."""

    def test_now_utc_is_aware(self) -> None:
        now = TimeProvider().now_utc()
        assert now.tzinfo is not None
        assert now.utcoffset() == datetime.timedelta(0)

    def test_test_time_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FAMILYCAL_TEST_TIME", "2026-01-10T08:00:00+01:00")
        assert now_utc() == datetime.datetime(2026, 1, 10, 7, 0, tzinfo=datetime.UTC)

    def test_naive_test_time_is_utc(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FAMILYCAL_TEST_TIME", "2026-01-10T08:00:00")
        assert now_utc() == datetime.datetime(2026, 1, 10, 8, 0, tzinfo=datetime.UTC)

    def test_invalid_test_time_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FAMILYCAL_TEST_TIME", "tomorrow-ish")
        now = now_utc()
        assert now.year >= 2024
