"""RRULE expansion logic for familycal_lite.

Expansion is a plain generator over dateutil's rruleset. The rule is seeded
with DTSTART as a naive wall-clock time in its own zone, so a 09:00 weekly
meeting stays at 09:00 local across DST changes; each candidate is then
localized and converted to UTC.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any, Optional

from dateutil.rrule import rrule, rruleset, rrulestr

from .lite_component_parser import ComponentNode
from .lite_datetime_utils import DecodedDateTime, decode_datetime_list, decode_datetime_property
from .lite_exceptions import LiteMissingRequiredFieldError, LiteRRuleParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 500
DEFAULT_MAX_ITERATIONS = 100_000


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion."""

    max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract expansion limits from a settings object, with defaults."""
        return cls(
            max_occurrences=getattr(settings, "max_occurrences", DEFAULT_MAX_OCCURRENCES),
            max_iterations=getattr(settings, "max_iterations", DEFAULT_MAX_ITERATIONS),
        )


def has_recurrence(master: ComponentNode) -> bool:
    """True if the VEVENT carries an RRULE or RDATE."""
    return master.has("RRULE") or master.has("RDATE")


def _normalize_until(rule_text: str, start: DecodedDateTime) -> str:
    """Rewrite UNTIL as a naive wall-clock value in DTSTART's zone.

    dateutil refuses to compare a naive DTSTART with an aware UNTIL, so a UTC
    UNTIL is converted into the event zone and a date-only UNTIL is extended
    to the end of that day.
    """
    parts = []
    for part in rule_text.split(";"):
        key, sep, value = part.partition("=")
        if key.strip().upper() != "UNTIL" or not sep:
            parts.append(part)
            continue

        value = value.strip()
        if len(value) == 8 and value.isdigit():
            value = f"{value}T235959"
        elif value.upper().endswith("Z"):
            try:
                until_utc = datetime.strptime(value[:-1], "%Y%m%dT%H%M%S").replace(tzinfo=UTC)
            except ValueError as e:
                raise LiteRRuleParseError(f"Invalid UNTIL value {value!r}: {e}") from e
            value = until_utc.astimezone(start.zone).strftime("%Y%m%dT%H%M%S")
        parts.append(f"UNTIL={value}")
    return ";".join(parts)


def _to_local(decoded: DecodedDateTime, zone: tzinfo) -> datetime:
    """Naive wall-clock reading of ``decoded`` in ``zone``."""
    return decoded.aware.astimezone(zone).replace(tzinfo=None)


def _rule_count(rule_text: str) -> Optional[int]:
    for part in rule_text.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip().upper() == "COUNT":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def _count_dtstart(rule: rrule, rule_text: str, dtstart: datetime) -> Optional[rrule]:
    """Make a COUNT rule include DTSTART in its count.

    dateutil drops a DTSTART that does not match the BY* parts, while DTSTART
    is always the first instance of the series. When the rule skips DTSTART
    its COUNT is reduced by one; None means no rule instances remain.
    """
    count = _rule_count(rule_text)
    if count is None or next(iter(rule), None) == dtstart:
        return rule
    if count <= 1:
        return None
    return rule.replace(count=count - 1)


def build_rule_set(master: ComponentNode, start: DecodedDateTime, default_tz: tzinfo = UTC) -> rruleset:
    """Build the candidate stream for a master VEVENT.

    Args:
        master: Master VEVENT node
        start: Decoded DTSTART of the master
        default_tz: Calendar default zone for floating RDATE values

    Returns:
        dateutil rruleset yielding naive wall-clock starts in ``start.zone``

    Raises:
        LiteRRuleParseError: If an RRULE cannot be parsed
    """
    rule_set = rruleset()
    # DTSTART is always the first instance, even when the rule would skip it
    rule_set.rdate(start.local)

    for prop in master.get_all("RRULE"):
        rule_text = _normalize_until(prop.value.strip(), start)
        try:
            rule = rrulestr(rule_text, dtstart=start.local, ignoretz=True)
        except (ValueError, TypeError) as e:
            raise LiteRRuleParseError(f"Invalid RRULE {prop.value!r}: {e}") from e
        if isinstance(rule, rruleset):
            raise LiteRRuleParseError(f"Unsupported RRULE {prop.value!r}")
        rule = _count_dtstart(rule, rule_text, start.local)
        if rule is not None:
            rule_set.rrule(rule)

    for prop in master.get_all("RDATE"):
        for rdate in decode_datetime_list(prop, default_tz):
            rule_set.rdate(_to_local(rdate, start.zone))

    return rule_set


def collect_exdates(master: ComponentNode, default_tz: tzinfo = UTC) -> set[datetime]:
    """UTC instants listed in the master's EXDATE properties."""
    return {d.utc for prop in master.get_all("EXDATE") for d in decode_datetime_list(prop, default_tz)}


def expand_occurrences(
    master: ComponentNode,
    window_start: datetime,
    window_end: datetime,
    *,
    duration: timedelta = timedelta(0),
    excluded: Iterable[datetime] = (),
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    default_tz: tzinfo = UTC,
) -> Iterator[datetime]:
    """Yield UTC-aware occurrence starts of a recurring master, ascending.

    Candidates equal to an excluded time (override RECURRENCE-IDs, EXDATEs) or
    ending at or before ``window_start`` are skipped without counting toward
    ``max_occurrences``. Iteration stops after the rule is exhausted, at the
    first candidate strictly after ``window_end``, or once ``max_occurrences``
    starts have been yielded.

    Args:
        master: Master VEVENT with RRULE and/or RDATE
        window_start: Inclusive UTC window start
        window_end: Exclusive UTC window end
        duration: Occurrence length used for the window-start check
        excluded: UTC instants that must not be emitted
        max_occurrences: Cap on yielded starts
        max_iterations: Guard against pathological rules
        default_tz: Calendar default zone for floating values

    Yields:
        UTC-aware occurrence start datetimes

    Raises:
        LiteMissingRequiredFieldError: If DTSTART is missing or undecodable
        LiteRRuleParseError: If the RRULE cannot be parsed
    """
    dtstart = master.get_first("DTSTART")
    if dtstart is None:
        raise LiteMissingRequiredFieldError("VEVENT has no DTSTART", field_name="DTSTART")
    try:
        start = decode_datetime_property(dtstart, default_tz)
    except ValueError as e:
        raise LiteMissingRequiredFieldError(f"Invalid DTSTART {dtstart.value!r}", field_name="DTSTART") from e

    rule_set = build_rule_set(master, start, default_tz)
    skip = set(excluded) | collect_exdates(master, default_tz)

    yielded = 0
    iterations = 0
    candidates = iter(rule_set)
    while True:
        try:
            candidate = next(candidates)
        except StopIteration:
            break
        except (ValueError, OverflowError) as e:
            logger.warning("RRULE iteration stopped for UID %s: %s", master.get_value("UID"), e)
            break

        iterations += 1
        if iterations > max_iterations:
            logger.warning(
                "RRULE expansion for UID %s exceeded %d candidates, stopping",
                master.get_value("UID"),
                max_iterations,
            )
            break

        occurrence = candidate.replace(tzinfo=start.zone).astimezone(UTC)
        if occurrence > window_end:
            break
        if occurrence in skip:
            continue
        if occurrence + duration <= window_start:
            continue

        yield occurrence
        yielded += 1
        if yielded >= max_occurrences:
            logger.debug(
                "RRULE expansion for UID %s capped at %d occurrences",
                master.get_value("UID"),
                max_occurrences,
            )
            break
