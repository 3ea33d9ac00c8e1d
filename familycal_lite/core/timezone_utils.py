"""Clock and timezone resolution utilities for familycal_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache
from typing import ClassVar

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

TEST_TIME_ENV = "FAMILYCAL_TEST_TIME"


class TimezoneResolver:
    """Maps TZID values found in ICS feeds to IANA identifiers."""

    # Windows timezone names emitted by Outlook/Exchange feeds
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        # US
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "US Mountain Standard Time": "America/Phoenix",  # Arizona (no DST)
        "Atlantic Standard Time": "America/Halifax",
        "Newfoundland Standard Time": "America/St_Johns",
        # Europe
        "GMT Standard Time": "Europe/London",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central European Standard Time": "Europe/Warsaw",
        "Central Europe Standard Time": "Europe/Budapest",
        "Romance Standard Time": "Europe/Paris",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Helsinki",
        "GTB Standard Time": "Europe/Bucharest",
        "Russian Standard Time": "Europe/Moscow",
        # Asia
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "Singapore Standard Time": "Asia/Singapore",
        "India Standard Time": "Asia/Kolkata",
        "Arabian Standard Time": "Asia/Dubai",
        "Israel Standard Time": "Asia/Jerusalem",
        # Australia & Pacific
        "AUS Eastern Standard Time": "Australia/Sydney",
        "E. Australia Standard Time": "Australia/Brisbane",
        "W. Australia Standard Time": "Australia/Perth",
        "New Zealand Standard Time": "Pacific/Auckland",
        # South America & Africa
        "E. South America Standard Time": "America/Sao_Paulo",
        "Argentina Standard Time": "America/Argentina/Buenos_Aires",
        "South Africa Standard Time": "Africa/Johannesburg",
        "Egypt Standard Time": "Africa/Cairo",
        "UTC": "UTC",
    }

    # Obsolete IANA names and common aliases
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Z": "UTC",
        "Zulu": "UTC",
    }

    def normalize(self, tz_name: str | None) -> str | None:
        """Normalize a TZID to a canonical IANA identifier.

        Args:
            tz_name: Windows name, alias, or IANA identifier; surrounding quotes
                and whitespace are tolerated

        Returns:
            IANA identifier known to zoneinfo, or None if it cannot be resolved
        """
        if not tz_name:
            return None

        candidate = tz_name.strip().strip('"')
        if not candidate:
            return None

        candidate = self.WINDOWS_TZ_MAP.get(candidate, candidate)
        candidate = self.TZ_ALIAS_MAP.get(candidate, candidate)

        try:
            zoneinfo.ZoneInfo(candidate)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.debug("Unknown timezone %r", tz_name)
            return None
        return candidate


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the FAMILYCAL_TEST_TIME environment
        variable (ISO 8601, e.g. "2026-01-10T08:00:00Z"). Naive values are
        treated as UTC.

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)
            except ValueError as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(datetime.UTC)


_resolver = TimezoneResolver()
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return _resolver.WINDOWS_TZ_MAP.get(windows_tz)


def normalize_timezone_name(tz_name: str | None) -> str | None:
    """Normalize a timezone string to a canonical IANA identifier or None.

    Examples:
        >>> normalize_timezone_name("Pacific Standard Time")
        'America/Los_Angeles'
        >>> normalize_timezone_name("US/Eastern")
        'America/New_York'
        >>> normalize_timezone_name("Invalid/Timezone") is None
        True
    """
    return _resolver.normalize(tz_name)


@lru_cache(maxsize=64)
def resolve_zone(tz_name: str | None) -> datetime.tzinfo | None:
    """Return a tzinfo for a TZID, or None when it cannot be resolved."""
    iana = normalize_timezone_name(tz_name)
    if iana is None:
        return None
    if iana == "UTC":
        return datetime.UTC
    return zoneinfo.ZoneInfo(iana)


def get_default_timezone(configured: str | None = None) -> datetime.tzinfo:
    """Resolve the configured default timezone, falling back to UTC.

    Args:
        configured: Timezone name from settings

    Returns:
        tzinfo for the configured zone, or UTC with a warning when invalid
    """
    zone = resolve_zone(configured or DEFAULT_TIMEZONE)
    if zone is None:
        logger.warning("Invalid default timezone %r, falling back to UTC", configured)
        return datetime.UTC
    return zone
