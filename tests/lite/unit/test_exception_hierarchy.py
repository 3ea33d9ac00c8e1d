"""Test cases for the lite exception hierarchy."""

import pytest

from familycal_lite.calendar.lite_exceptions import (
    LiteAggregationError,
    LiteCalendarError,
    LiteConfigError,
    LiteICSFetchError,
    LiteICSHTTPError,
    LiteICSNetworkError,
    LiteICSTimeoutError,
    LiteMalformedDocumentError,
    LiteMissingRequiredFieldError,
    LiteRRuleExpansionError,
    LiteRRuleParseError,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestExceptionHierarchy:
    """Test the exception hierarchy is properly structured."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            LiteConfigError,
            LiteICSFetchError,
            LiteMalformedDocumentError,
            LiteMissingRequiredFieldError,
            LiteRRuleExpansionError,
            LiteAggregationError,
        ],
    )
    def test_all_exceptions_inherit_from_base(self, exc_class) -> None:
        assert issubclass(exc_class, LiteCalendarError)

    @pytest.mark.parametrize("exc_class", [LiteICSNetworkError, LiteICSTimeoutError, LiteICSHTTPError])
    def test_fetch_failures_share_a_base(self, exc_class) -> None:
        assert issubclass(exc_class, LiteICSFetchError)

    def test_parse_error_is_expansion_error(self) -> None:
        assert issubclass(LiteRRuleParseError, LiteRRuleExpansionError)

    def test_message_attribute(self) -> None:
        error = LiteMalformedDocumentError("END:VEVENT without BEGIN")
        assert error.message == "END:VEVENT without BEGIN"
        assert str(error) == "END:VEVENT without BEGIN"

    def test_extra_attributes(self) -> None:
        assert LiteICSHTTPError("HTTP 503", status_code=503).status_code == 503
        assert LiteMissingRequiredFieldError("no start", field_name="DTSTART").field_name == "DTSTART"
