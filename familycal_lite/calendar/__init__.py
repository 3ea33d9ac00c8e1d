"""ICS parsing, recurrence expansion and occurrence materialization for familycal_lite."""

from .lite_component_parser import ComponentNode, RawProperty, parse_components, parse_property_line
from .lite_event_grouping import EventGroup, group_events
from .lite_materializer import MaterializeContext, materialize_events, materialize_group
from .lite_models import LiteAggregationResult, LiteCalendarEvent, LiteCalendarSource, QueryWindow
from .lite_rrule_expander import expand_occurrences
from .lite_unfolder import unfold_lines

__all__ = [
    "ComponentNode",
    "EventGroup",
    "LiteAggregationResult",
    "LiteCalendarEvent",
    "LiteCalendarSource",
    "MaterializeContext",
    "QueryWindow",
    "RawProperty",
    "expand_occurrences",
    "group_events",
    "materialize_events",
    "materialize_group",
    "parse_components",
    "parse_property_line",
    "unfold_lines",
]
