"""
Central logging configuration for familycal_lite.

Suppresses verbose debug logs from third-party libraries while keeping
WARNING/ERROR/INFO output for diagnostics on small always-on hosts.
"""

import logging
import os
from typing import Optional

from colorlog import ColoredFormatter

CONSOLE_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party loggers capped at these levels
THIRD_PARTY_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def env_debug_enabled() -> bool:
    return os.getenv("FAMILYCAL_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def build_console_handler() -> logging.Handler:
    """Stream handler with the colorized ``HH:MM:SS LEVEL name: message`` format."""
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT, log_colors=LOG_COLORS))
    return handler


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for familycal_lite.

    Args:
        debug_mode: Whether to enable debug logging for familycal_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        FAMILYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        FAMILYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("FAMILYCAL_LOG_LEVEL", "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug_enabled():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    # Keep a handler installed by _init_logging instead of stacking a second one
    if not root_logger.handlers:
        root_logger.addHandler(build_console_handler())

    for logger_name, level in THIRD_PARTY_LEVELS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("familycal_lite").setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.info("Debug logging enabled for familycal_lite modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("familycal_lite", "aiohttp.access", "httpx", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
