"""Exception hierarchy for familycal_lite calendar processing.

Errors are grouped by the boundary that recovers them:

- fetch errors are recovered per calendar source (stale cache or zero events)
- malformed documents are recovered per calendar source (zero events)
- missing fields and bad recurrence rules are recovered per event
- aggregation errors are the only ones surfaced to HTTP callers
"""

from typing import Optional


class LiteCalendarError(Exception):
    """Base exception for all familycal_lite errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LiteConfigError(LiteCalendarError):
    """Configuration value is present but unusable."""


class LiteICSFetchError(LiteCalendarError):
    """Raw ICS text could not be obtained for a source."""


class LiteICSNetworkError(LiteICSFetchError):
    """Network error during ICS fetch."""


class LiteICSTimeoutError(LiteICSFetchError):
    """Timeout error during ICS fetch."""


class LiteICSHTTPError(LiteICSFetchError):
    """Remote server answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LiteMalformedDocumentError(LiteCalendarError):
    """BEGIN/END nesting is unbalanced or no VCALENDAR root could be built.

    Raised when:
    - an END marker does not match the innermost open component
    - an END marker appears with no open component
    - components are still open when the input ends
    - property lines appear outside of any component
    """


class LiteMissingRequiredFieldError(LiteCalendarError):
    """A VEVENT lacks a field needed to place it on the timeline (UID, DTSTART)."""

    def __init__(self, message: str, field_name: str = ""):
        super().__init__(message)
        self.field_name = field_name


class LiteRRuleExpansionError(LiteCalendarError):
    """Base exception for RRULE expansion errors."""


class LiteRRuleParseError(LiteRRuleExpansionError):
    """Error parsing RRULE string."""


class LiteAggregationError(LiteCalendarError):
    """The aggregation infrastructure itself failed.

    Should result in HTTP 500 response.
    """
