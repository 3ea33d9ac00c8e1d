"""DateTime decoding utilities for ICS calendar processing - familycal_lite.

This module turns DTSTART/DTEND/RECURRENCE-ID/EXDATE/RDATE property values into
timezone-aware datetimes and renders output timestamps. Raw value decoding is
delegated to icalendar's property types; zone selection follows these rules:

- a trailing ``Z`` is UTC
- ``TZID=`` is resolved through zoneinfo (Windows names mapped to IANA)
- unknown TZIDs and floating times use the calendar default zone
- all-day dates are anchored at UTC midnight
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Optional

from dateutil import parser as date_parser
from icalendar.prop import vDate, vDatetime, vDuration

from ..core.timezone_utils import get_default_timezone, resolve_zone
from .lite_component_parser import ComponentNode, RawProperty

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MILLISECOND = timedelta(milliseconds=1)


@dataclass(frozen=True)
class DecodedDateTime:
    """A decoded date-time value with the zone it was written in.

    ``local`` is the naive wall-clock reading in ``zone``; recurrence expansion
    is seeded from it so that DST transitions are respected.
    """

    local: datetime
    zone: tzinfo
    all_day: bool = False

    @property
    def aware(self) -> datetime:
        return self.local.replace(tzinfo=self.zone)

    @property
    def utc(self) -> datetime:
        return self.aware.astimezone(UTC)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware (UTC if originally naive)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def is_date_value(prop: RawProperty) -> bool:
    """True for ``VALUE=DATE`` properties or bare 8-digit values."""
    value_type = (prop.get_param("VALUE") or "").upper()
    if value_type == "DATE":
        return True
    raw = prop.value.strip()
    return len(raw) == 8 and raw.isdigit()


def calendar_timezone(root: ComponentNode, configured_default: Optional[str] = None) -> tzinfo:
    """Pick the zone used for floating times in one calendar.

    Args:
        root: Parsed VCALENDAR node
        configured_default: Default timezone name from settings

    Returns:
        X-WR-TIMEZONE if it resolves, else the configured default, else UTC
    """
    declared = root.get_value("X-WR-TIMEZONE")
    if declared:
        zone = resolve_zone(declared.strip())
        if zone is not None:
            return zone
        logger.debug("Ignoring unknown X-WR-TIMEZONE %r", declared)
    return get_default_timezone(configured_default)


def _decode_single(raw: str, all_day: bool, zone: tzinfo) -> DecodedDateTime:
    raw = raw.strip()
    if all_day:
        day = vDate.from_ical(raw[:8])
        return DecodedDateTime(local=datetime(day.year, day.month, day.day), zone=UTC, all_day=True)

    parsed = vDatetime.from_ical(raw)
    if parsed.tzinfo is not None:
        return DecodedDateTime(local=parsed.astimezone(UTC).replace(tzinfo=None), zone=UTC)
    return DecodedDateTime(local=parsed, zone=zone)


def _property_zone(prop: RawProperty, default_tz: tzinfo) -> tzinfo:
    tzid = prop.get_param("TZID")
    if not tzid:
        return default_tz
    zone = resolve_zone(tzid)
    if zone is None:
        logger.debug("Unknown TZID %r on %s, using calendar default", tzid, prop.name)
        return default_tz
    return zone


def decode_datetime_property(prop: RawProperty, default_tz: tzinfo = UTC) -> DecodedDateTime:
    """Decode a DTSTART/DTEND/RECURRENCE-ID style property.

    Args:
        prop: Property to decode
        default_tz: Calendar default zone for floating times and unknown TZIDs

    Returns:
        DecodedDateTime

    Raises:
        ValueError: If the value is not a valid DATE or DATE-TIME
    """
    return _decode_single(prop.value, is_date_value(prop), _property_zone(prop, default_tz))


def decode_datetime_list(prop: RawProperty, default_tz: tzinfo = UTC) -> list[DecodedDateTime]:
    """Decode a comma-separated EXDATE/RDATE property.

    PERIOD values contribute their start. Undecodable entries are skipped.
    """
    zone = _property_zone(prop, default_tz)
    value_type = (prop.get_param("VALUE") or "").upper()
    results: list[DecodedDateTime] = []

    for part in prop.value.split(","):
        part = part.strip()
        if not part:
            continue
        if value_type == "PERIOD" or "/" in part:
            part = part.split("/", 1)[0]
        all_day = value_type == "DATE" or (len(part) == 8 and part.isdigit())
        try:
            results.append(_decode_single(part, all_day, zone))
        except ValueError:
            logger.debug("Skipping undecodable %s value %r", prop.name, part)
    return results


def decode_duration(value: Optional[str]) -> Optional[timedelta]:
    """Decode an ICS DURATION value, returning None when absent or invalid."""
    if not value:
        return None
    try:
        return vDuration.from_ical(value.strip())
    except ValueError:
        logger.debug("Invalid DURATION %r", value)
        return None


def to_epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch for a datetime (naive treated as UTC)."""
    return (ensure_timezone_aware(dt) - _EPOCH) // _ONE_MILLISECOND


def format_iso_utc(dt: datetime) -> str:
    """Render a datetime as ISO 8601 UTC with millisecond precision.

    Examples:
        >>> format_iso_utc(datetime(2026, 1, 5, 9, 0, tzinfo=UTC))
        '2026-01-05T09:00:00.000Z'
    """
    dt_utc = ensure_timezone_aware(dt).astimezone(UTC)
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt_utc.microsecond // 1000:03d}Z"


def parse_iso_utc(value: str) -> datetime:
    """Parse an ISO 8601 timestamp to an aware UTC datetime (naive means UTC).

    Raises:
        ValueError: If the value is not ISO 8601
    """
    return ensure_timezone_aware(date_parser.isoparse(value.strip())).astimezone(UTC)
