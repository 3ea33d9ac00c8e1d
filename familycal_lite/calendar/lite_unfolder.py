"""RFC 5545 line unfolding for familycal_lite.

Turns raw ICS text into logical content lines. Folded lines (a physical line
starting with a space or tab) are joined onto the previous line after removing
that single leading whitespace character.
"""

from collections.abc import Iterator

FOLD_CHARS = (" ", "\t")
BYTE_ORDER_MARK = "\ufeff"


def _physical_lines(text: str) -> Iterator[str]:
    """Yield physical lines for CRLF, LF or bare CR line endings."""
    start = 0
    length = len(text)
    while start < length:
        end = start
        while end < length and text[end] not in "\r\n":
            end += 1
        yield text[start:end]
        if end < length and text[end] == "\r" and end + 1 < length and text[end + 1] == "\n":
            end += 1
        start = end + 1


def unfold_lines(text: str) -> Iterator[str]:
    """Yield logical ICS lines with continuation lines merged in.

    Best effort: a continuation with nothing before it starts a new logical
    line, and the final line is emitted even without a trailing newline.
    Empty lines and a leading byte order mark are dropped.

    Args:
        text: Raw ICS document

    Yields:
        Unfolded logical lines, without line terminators
    """
    if text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK):]

    pending: list[str] = []

    for line in _physical_lines(text):
        if line.startswith(FOLD_CHARS) and pending:
            pending.append(line[1:])
            continue

        if pending:
            logical = "".join(pending)
            if logical.strip():
                yield logical
        pending = [line[1:] if line.startswith(FOLD_CHARS) else line]

    if pending:
        logical = "".join(pending)
        if logical.strip():
            yield logical
