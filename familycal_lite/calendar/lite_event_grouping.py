"""UID grouping and override resolution for VEVENT components - familycal_lite.

A recurring series arrives as one master VEVENT (no RECURRENCE-ID) plus zero
or more override VEVENTs sharing its UID, each replacing or cancelling a single
occurrence identified by its RECURRENCE-ID.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Optional

from .lite_component_parser import ComponentNode
from .lite_datetime_utils import decode_datetime_property

logger = logging.getLogger(__name__)

CANCELLED_TITLE_MARKERS = ("canceled:", "cancelled:")


def is_cancelled(node: ComponentNode) -> bool:
    """True if a VEVENT is cancelled by STATUS or by a 'Canceled:' title prefix."""
    status = (node.get_value("STATUS") or "").strip().upper()
    if status == "CANCELLED":
        return True
    title = (node.get_text("SUMMARY") or "").lower()
    return any(marker in title for marker in CANCELLED_TITLE_MARKERS)


@dataclass
class EventGroup:
    """All VEVENTs of one calendar that share a UID."""

    uid: str
    master: Optional[ComponentNode] = None
    override_nodes: list[ComponentNode] = field(default_factory=list)

    def has_master(self) -> bool:
        return self.master is not None

    def master_is_cancelled(self) -> bool:
        return self.master is not None and is_cancelled(self.master)

    def overrides(self) -> list[ComponentNode]:
        return list(self.override_nodes)

    def override_occurrence_times(self, default_tz: tzinfo = UTC) -> set[datetime]:
        """Decode every override's RECURRENCE-ID to a UTC instant.

        Args:
            default_tz: Calendar default zone for floating values

        Returns:
            Set of UTC-aware datetimes; undecodable RECURRENCE-IDs are skipped
        """
        times: set[datetime] = set()
        for node in self.override_nodes:
            prop = node.get_first("RECURRENCE-ID")
            if prop is None:
                continue
            try:
                times.add(decode_datetime_property(prop, default_tz).utc)
            except ValueError:
                logger.debug("Skipping undecodable RECURRENCE-ID %r for UID %s", prop.value, self.uid)
        return times


def group_events(vevents: Iterable[ComponentNode]) -> list[EventGroup]:
    """Group VEVENT nodes by UID, preserving first-seen order.

    VEVENTs without a UID are dropped. The first VEVENT without RECURRENCE-ID
    becomes the master; later duplicates are ignored.

    Args:
        vevents: VEVENT component nodes from one calendar

    Returns:
        List of EventGroup in first-seen UID order
    """
    groups: dict[str, EventGroup] = {}

    for node in vevents:
        uid = (node.get_value("UID") or "").strip()
        if not uid:
            logger.debug("Dropping VEVENT without UID (summary=%r)", node.get_text("SUMMARY"))
            continue

        group = groups.get(uid)
        if group is None:
            group = groups[uid] = EventGroup(uid=uid)

        if node.has("RECURRENCE-ID"):
            group.override_nodes.append(node)
        elif group.master is None:
            group.master = node
        else:
            logger.warning("Ignoring duplicate master VEVENT for UID %s", uid)

    return list(groups.values())
