"""familycal_lite - family calendar aggregation server.

Merges several ICS feeds into one time-bounded event list for small displays.
Imports are kept inside functions so the package can be inspected without
pulling in aiohttp or httpx.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors FAMILYCAL_DEBUG (truthy values: "1", "true", "yes", "on"), which
    forces DEBUG verbosity without changing code.
    """
    import logging

    from familycal_lite.core.lite_logging import build_console_handler, env_debug_enabled

    if env_debug_enabled():
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        root.addHandler(build_console_handler())

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.strip().upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug("Logging initialized at level %s", logging.getLevelName(level))


def _apply_cli_overrides(settings: Any, args: Optional[object]) -> Any:
    """Return settings with --host/--port/--debug applied."""
    import logging

    logger = logging.getLogger(__name__)
    if args is None:
        return settings

    updates: dict[str, Any] = {}
    host = getattr(args, "host", None)
    if host:
        updates["web_host"] = host
    port = getattr(args, "port", None)
    if port is not None:
        updates["web_port"] = int(port)
        logger.debug("Applied command line port override: %d", int(port))
    if getattr(args, "debug", False):
        updates["debug"] = True

    return settings.model_copy(update=updates) if updates else settings


def _window_from_args(args: Optional[object]) -> Any:
    """QueryWindow from --from/--to, or None for the configured default."""
    from familycal_lite.calendar.lite_datetime_utils import parse_iso_utc
    from familycal_lite.calendar.lite_models import QueryWindow

    start = getattr(args, "from_", None)
    end = getattr(args, "to", None)
    if not start and not end:
        return None

    default = QueryWindow.around()
    return QueryWindow(
        start=parse_iso_utc(start) if start else default.start,
        end=parse_iso_utc(end) if end else default.end,
    )


def run_server(args: Optional[object] = None) -> None:
    """Load configuration and start the server, or dump one aggregation.

    Args:
        args: Optional argparse namespace with host, port, debug, dump,
            from_ and to attributes

    Behavior:
    - Initialize console logging early using FAMILYCAL_LOG_LEVEL (env).
    - Load .env and environment into immutable settings.
    - Apply command line overrides.
    - With --dump: aggregate once and print the JSON payload to stdout.
    - Otherwise: run the HTTP server until SIGINT/SIGTERM.
    """
    import asyncio
    import json
    import logging
    import os

    _init_logging(os.environ.get("FAMILYCAL_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from familycal_lite.core.config_manager import ConfigManager
    from familycal_lite.core.lite_logging import configure_lite_logging, get_logging_status

    settings = _apply_cli_overrides(ConfigManager().load_settings(), args)
    configure_lite_logging(debug_mode=settings.debug)
    logger.debug("Logging status: %s", get_logging_status())

    if not settings.sources:
        logger.warning("No calendars configured; set CAL_1_URL .. CAL_8_URL")

    from familycal_lite.api import server

    if getattr(args, "dump", False):
        payload = asyncio.run(server.dump_once(settings, _window_from_args(args)))
        print(json.dumps(payload, indent=2))
        return

    logger.info("Starting familycal_lite server")
    server.start_server(settings)
