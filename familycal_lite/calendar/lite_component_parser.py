"""Component tree parser for ICS content - familycal_lite.

Consumes unfolded content lines and builds a tree of ComponentNode objects
(VCALENDAR -> VEVENT, VALARM, ...). Property values are kept verbatim; this
module does not interpret VEVENT contents.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Union

from .lite_exceptions import LiteMalformedDocumentError
from .lite_unfolder import unfold_lines

logger = logging.getLogger(__name__)

ROOT_COMPONENT = "VCALENDAR"


@dataclass(frozen=True)
class RawProperty:
    """One ICS content line: NAME;KEY=VALUE;...:value."""

    name: str
    parameters: Mapping[str, str] = field(default_factory=dict, hash=False)
    value: str = ""

    def get_param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return a parameter value by case-insensitive key."""
        return self.parameters.get(key.upper(), default)


@dataclass
class ComponentNode:
    """A named ICS component holding ordered properties and child components."""

    name: str
    properties: list[RawProperty] = field(default_factory=list)
    children: list["ComponentNode"] = field(default_factory=list)

    def get_first(self, name: str) -> Optional[RawProperty]:
        """Return the first property called ``name``, or None."""
        wanted = name.upper()
        for prop in self.properties:
            if prop.name == wanted:
                return prop
        return None

    def get_all(self, name: str) -> list[RawProperty]:
        """Return every property called ``name`` in document order."""
        wanted = name.upper()
        return [prop for prop in self.properties if prop.name == wanted]

    def has(self, name: str) -> bool:
        return self.get_first(name) is not None

    def get_value(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the raw value of the first ``name`` property."""
        prop = self.get_first(name)
        return prop.value if prop is not None else default

    def get_text(self, name: str) -> Optional[str]:
        """Return the first ``name`` property as unescaped TEXT, or None."""
        prop = self.get_first(name)
        if prop is None:
            return None
        return unescape_text(prop.value)

    def children_named(self, name: str) -> list["ComponentNode"]:
        wanted = name.upper()
        return [child for child in self.children if child.name == wanted]


def unescape_text(value: str) -> str:
    """Decode RFC 5545 TEXT escapes (\\n, \\N, \\, \\; \\\\)."""
    if "\\" not in value:
        return value

    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            if nxt in "nN":
                out.append("\n")
            elif nxt in ",;\\":
                out.append(nxt)
            else:
                # Unknown escape, keep as-is
                out.append(ch + nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _split_unquoted(text: str, sep: str) -> list[str]:
    """Split on ``sep`` ignoring separators inside double quotes."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
            current.append(ch)
        elif ch == sep and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _find_value_separator(line: str) -> int:
    """Index of the first ':' that is not inside a quoted parameter value."""
    in_quotes = False
    for idx, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            return idx
    return -1


def parse_property_line(line: str) -> Optional[RawProperty]:
    """Parse a single unfolded content line into a RawProperty.

    Args:
        line: Logical line such as ``DTSTART;TZID=Europe/Oslo:20260105T090000``

    Returns:
        RawProperty, or None when the line has no name/value separator
    """
    sep = _find_value_separator(line)
    if sep <= 0:
        return None

    head, value = line[:sep], line[sep + 1 :]
    segments = _split_unquoted(head, ";")
    name = segments[0].strip().upper()
    if not name:
        return None

    params: dict[str, str] = {}
    for segment in segments[1:]:
        if not segment:
            continue
        key, _, param_value = segment.partition("=")
        param_value = param_value.strip()
        if len(param_value) >= 2 and param_value.startswith('"') and param_value.endswith('"'):
            param_value = param_value[1:-1]
        params.setdefault(key.strip().upper(), param_value)

    return RawProperty(name=name, parameters=MappingProxyType(params), value=value)


def parse_components(source: Union[str, Iterable[str]]) -> ComponentNode:
    """Build the component tree for an ICS document.

    Args:
        source: Raw ICS text, or an iterable of already-unfolded lines

    Returns:
        The root VCALENDAR ComponentNode

    Raises:
        LiteMalformedDocumentError: If BEGIN/END nesting is unbalanced or no
            VCALENDAR root exists
    """
    lines: Iterator[str] = unfold_lines(source) if isinstance(source, str) else iter(source)

    root: Optional[ComponentNode] = None
    stack: list[ComponentNode] = []
    line_no = 0

    for line in lines:
        line_no += 1
        prop = parse_property_line(line)
        if prop is None:
            logger.debug("Skipping unparseable ICS line %d: %r", line_no, line[:80])
            continue

        if prop.name == "BEGIN":
            comp_name = prop.value.strip().upper()
            node = ComponentNode(name=comp_name)
            if stack:
                stack[-1].children.append(node)
            stack.append(node)
            continue

        if prop.name == "END":
            comp_name = prop.value.strip().upper()
            if not stack:
                raise LiteMalformedDocumentError(
                    f"Line {line_no}: END:{comp_name} without matching BEGIN"
                )
            if stack[-1].name != comp_name:
                raise LiteMalformedDocumentError(
                    f"Line {line_no}: END:{comp_name} does not close BEGIN:{stack[-1].name}"
                )
            closed = stack.pop()
            if not stack:
                if closed.name != ROOT_COMPONENT:
                    logger.debug("Skipping top-level %s ending at line %d", closed.name, line_no)
                elif root is None:
                    root = closed
                else:
                    # Concatenated feeds: fold later calendars into the first one
                    root.children.extend(closed.children)
            continue

        if not stack:
            logger.debug("Skipping property %s outside of any component at line %d", prop.name, line_no)
            continue
        stack[-1].properties.append(prop)

    if stack:
        raise LiteMalformedDocumentError(
            "Unclosed components at end of input: " + ", ".join(node.name for node in stack)
        )
    if root is None:
        raise LiteMalformedDocumentError("No VCALENDAR component found")

    logger.debug(
        "Parsed %s with %d properties and %d child components",
        root.name,
        len(root.properties),
        len(root.children),
    )
    return root
