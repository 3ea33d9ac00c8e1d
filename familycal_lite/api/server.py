"""aiohttp server for familycal_lite.

Routes:
    GET/OPTIONS /api/calendar   aggregated events for a window (?from=&to=)
    GET/OPTIONS /api/ics        raw ICS proxy for one source (?id=N)
    GET         /api/health     configuration status
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import hmac
import logging
import signal
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web
from pydantic import ValidationError

from familycal_lite.calendar.lite_datetime_utils import format_iso_utc, parse_iso_utc
from familycal_lite.calendar.lite_exceptions import LiteAggregationError, LiteICSFetchError
from familycal_lite.calendar.lite_models import LiteAppSettings, QueryWindow
from familycal_lite.core.fetch_cache import LiteFetchCache
from familycal_lite.core.http_client import LiteICSFetcher
from familycal_lite.core.timezone_utils import now_utc as _now_utc
from familycal_lite.domain.aggregator import CalendarAggregator

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
ICS_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=600"


def _check_api_key(request: web.Request, api_secret: Optional[str]) -> bool:
    """Check the x-api-key header against the configured secret.

    Args:
        request: aiohttp request object
        api_secret: Expected key, or None to skip auth

    Returns:
        True if auth is valid or not required, False otherwise
    """
    if not api_secret:
        return True
    provided = request.headers.get("x-api-key", "")
    return hmac.compare_digest(provided.encode(), api_secret.encode())


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


@web.middleware
async def cors_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Allow any origin on every response, including error responses."""
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers["Access-Control-Allow-Origin"] = "*"
        raise
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


def register_api_routes(
    app: web.Application,
    settings: LiteAppSettings,
    aggregator: CalendarAggregator,
    fetch_cache: LiteFetchCache,
    time_provider: Callable[[], datetime.datetime] = _now_utc,
) -> None:
    """Register the calendar, ICS proxy and health routes.

    Args:
        app: aiohttp web application
        settings: Application settings (api_secret, sources, slots)
        aggregator: Aggregator serving /api/calendar
        fetch_cache: Cache serving /api/ics
        time_provider: Clock for health timestamps
    """

    async def preflight(_request: web.Request) -> web.Response:
        return web.Response(status=200, headers=CORS_HEADERS)

    async def get_calendar(request: web.Request) -> web.Response:
        """Aggregated, window-filtered events for every configured calendar."""
        if not _check_api_key(request, settings.api_secret):
            return _error("Unauthorized", 401)

        default_window = aggregator.default_window()
        try:
            start = (
                parse_iso_utc(request.query["from"]) if request.query.get("from") else default_window.start
            )
            end = parse_iso_utc(request.query["to"]) if request.query.get("to") else default_window.end
        except ValueError:
            return _error("Invalid 'from' or 'to' parameter, expected ISO 8601", 400)

        try:
            window = QueryWindow(start=start, end=end)
        except ValidationError:
            return _error("'from' must be before 'to'", 400)

        try:
            result = await aggregator.aggregate(window)
        except LiteAggregationError:
            logger.exception("Calendar API error")
            return _error("Failed to fetch calendars", 500)

        logger.debug("/api/calendar returning %d events", len(result.events))
        return web.json_response(result.to_api_dict())

    async def get_ics(request: web.Request) -> web.Response:
        """Proxy the raw ICS text of one source through the fetch cache."""
        if not _check_api_key(request, settings.api_secret):
            return _error("Unauthorized", 401)

        slot_count = len(settings.sources)
        try:
            index = int(request.query.get("id", ""))
        except ValueError:
            index = 0
        source = settings.source_by_slot(index)
        if source is None:
            return _error(f"Invalid calendar ID. Use ?id=1 .. ?id={max(slot_count, 1)}", 400)

        try:
            text = await fetch_cache.get_text(source)
        except LiteICSFetchError as e:
            logger.warning("ICS proxy failed for %r: %s", source.name, e)
            return _error(f"Failed to fetch calendar: {e.message}", 502)

        return web.Response(
            text=text,
            content_type="text/calendar",
            charset="utf-8",
            headers={"Cache-Control": ICS_CACHE_CONTROL},
        )

    async def get_health(_request: web.Request) -> web.Response:
        """Report which calendar slots are configured."""
        calendars = {
            f"cal_{n}": "configured" if configured else "missing"
            for n, configured in sorted(settings.configured_slots.items())
        }
        return web.json_response(
            {
                "status": "ok",
                "timestamp": format_iso_utc(time_provider()),
                "calendars": calendars,
                "allConfigured": bool(calendars) and all(settings.configured_slots.values()),
            }
        )

    app.router.add_get("/api/calendar", get_calendar)
    app.router.add_route("OPTIONS", "/api/calendar", preflight)
    app.router.add_get("/api/ics", get_ics)
    app.router.add_route("OPTIONS", "/api/ics", preflight)
    app.router.add_get("/api/health", get_health)


def _make_app(
    settings: LiteAppSettings,
    fetcher: Optional[LiteICSFetcher] = None,
    time_provider: Callable[[], datetime.datetime] = _now_utc,
) -> web.Application:
    """Create aiohttp web application wired to a fetcher, cache and aggregator.

    Args:
        settings: Application settings
        fetcher: ICS fetcher, created from settings when omitted
        time_provider: Clock used for default windows and timestamps

    Returns:
        Configured web.Application
    """
    fetcher = fetcher or LiteICSFetcher(settings)
    fetch_cache = LiteFetchCache.from_settings(settings, fetcher.fetch_text)
    # The cache enforces the per-source timeout itself so it can serve stale copies
    aggregator = CalendarAggregator.from_settings(
        settings, fetch_cache.get_text, time_provider, fetch_timeout=None
    )

    app = web.Application(middlewares=[cors_middleware])
    register_api_routes(app, settings, aggregator, fetch_cache, time_provider)

    async def _close_fetcher(_app: web.Application) -> None:
        await fetcher.close()

    app.on_cleanup.append(_close_fetcher)
    return app


async def _serve(settings: LiteAppSettings, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop.

    Args:
        settings: Application settings
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()

    app = _make_app(settings)
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host=settings.web_host, port=settings.web_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", settings.web_host, settings.web_port)
        await runner.cleanup()
        raise

    logger.info(
        "Server started on %s:%d serving %d calendars",
        settings.web_host,
        settings.web_port,
        len(settings.sources),
    )

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")
    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(settings: LiteAppSettings) -> None:
    """Run the HTTP server, blocking until SIGINT/SIGTERM."""
    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


async def dump_once(settings: LiteAppSettings, window: Optional[QueryWindow] = None) -> dict[str, Any]:
    """Aggregate once without starting the server and return the JSON payload."""
    async with LiteICSFetcher(settings) as fetcher:
        aggregator = CalendarAggregator.from_settings(settings, fetcher.fetch_text)
        result = await aggregator.aggregate(window)
    return result.to_api_dict()
