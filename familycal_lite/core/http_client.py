"""HTTP client for downloading ICS calendar files - familycal_lite."""

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from familycal_lite.calendar.lite_exceptions import (
    LiteICSFetchError,
    LiteICSHTTPError,
    LiteICSNetworkError,
    LiteICSTimeoutError,
)
from familycal_lite.calendar.lite_models import LiteCalendarSource
from familycal_lite.core.config_manager import get_config_value

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "FamilyCalendar/1.0",
    "Accept": "text/calendar, text/plain, */*",
}

_LIMITS = httpx.Limits(max_connections=8, max_keepalive_connections=4)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3


def build_client(request_timeout: float = 30.0) -> httpx.AsyncClient:
    """Create the AsyncClient shared by all sources."""
    timeout = httpx.Timeout(connect=10.0, read=request_timeout, write=10.0, pool=30.0)
    return httpx.AsyncClient(
        timeout=timeout,
        limits=_LIMITS,
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
    )


class LiteICSFetcher:
    """Async HTTP client for downloading ICS calendar files."""

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize ICS fetcher.

        Args:
            settings: LiteAppSettings or a plain mapping (request_timeout,
                max_retries, retry_backoff_factor are read with defaults)
            client: Optional externally owned client, e.g. one built on
                httpx.MockTransport; it is never closed by the fetcher
        """
        self.settings = settings
        self.client = client
        self._owns_client = client is None
        self.request_timeout = float(get_config_value(settings, "request_timeout", 30.0))
        self.max_retries = int(get_config_value(settings, "max_retries", 2))
        self.backoff_factor = float(get_config_value(settings, "retry_backoff_factor", 1.0))

    async def __aenter__(self) -> "LiteICSFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = build_client(self.request_timeout)
            self._owns_client = True
        return self.client

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client and not self.client.is_closed:
            await self.client.aclose()
            logger.debug("Closed HTTP client")
        if self._owns_client:
            self.client = None

    def _validate_url(self, url: str) -> bool:
        """Only absolute http(s) URLs with a hostname are fetched."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False
        return True

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (0-indexed)

        Returns:
            Backoff time in seconds including jitter
        """
        base_backoff = min(self.backoff_factor * (2**attempt), MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
        return base_backoff + jitter

    async def _make_request_with_retry(self, url: str) -> httpx.Response:
        """GET ``url``, retrying network and timeout errors.

        HTTP status errors are raised immediately without retry.
        """
        client = self._ensure_client()
        attempt = 0

        while True:
            try:
                response = await client.get(url)
                response.raise_for_status()
                logger.debug(
                    "Fetched %s (attempt %d) - %d bytes", url, attempt + 1, len(response.content)
                )
                return response

            except httpx.HTTPStatusError:
                raise

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= self.max_retries:
                    logger.warning("All %d attempts failed for %s: %s", attempt + 1, url, e)
                    raise
                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

    async def fetch_text(self, source: LiteCalendarSource) -> str:
        """Download the raw ICS text of a calendar source.

        Args:
            source: Calendar source to fetch

        Returns:
            Non-empty response body

        Raises:
            LiteICSHTTPError: Remote server answered with a non-2xx status
            LiteICSTimeoutError: Request timed out on every attempt
            LiteICSNetworkError: Connection failed on every attempt
            LiteICSFetchError: Invalid URL, empty body or other transport failure
        """
        if not self._validate_url(source.url):
            raise LiteICSFetchError(f"Refusing to fetch invalid URL for {source.name!r}")

        logger.debug("Fetching ICS for %r from %s", source.name, source.url)
        try:
            response = await self._make_request_with_retry(source.url)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise LiteICSHTTPError(f"HTTP {status} fetching {source.name!r}", status_code=status) from e
        except httpx.TimeoutException as e:
            raise LiteICSTimeoutError(f"Timeout fetching {source.name!r}: {e}") from e
        except httpx.NetworkError as e:
            raise LiteICSNetworkError(f"Network error fetching {source.name!r}: {e}") from e
        except httpx.HTTPError as e:
            raise LiteICSFetchError(f"Error fetching {source.name!r}: {e}") from e

        content = response.text
        if not content or not content.strip():
            raise LiteICSFetchError(f"Empty content received for {source.name!r}")

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.debug("Unexpected content type for %r: %s", source.name, content_type)

        return content
