"""Configuration management for familycal_lite server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from familycal_lite.calendar.lite_exceptions import LiteConfigError
from familycal_lite.calendar.lite_models import DEFAULT_SOURCE_COLORS, LiteAppSettings, LiteCalendarSource

logger = logging.getLogger(__name__)

# CAL_1_* .. CAL_8_*
MAX_SOURCE_SLOTS = 8
# Health always reports at least this many slots
REPORTED_SOURCE_SLOTS = 4

TRUTHY = ("1", "true", "yes", "on")


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


def _parse_number(name: str, cast: Callable[[str], Any]) -> Any:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Invalid %s=%r; ignoring", name, raw)
        return None


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_sources_from_env(self) -> tuple[list[dict[str, str]], dict[int, bool]]:
        """Collect CAL_<n>_URL / CAL_<n>_NAME / CAL_<n>_COLOR for n = 1..8.

        Returns:
            (source dicts for slots with a URL, slot number -> configured flag)
        """
        sources: list[dict[str, str]] = []
        slots: dict[int, bool] = {}

        for n in range(1, MAX_SOURCE_SLOTS + 1):
            url = (os.environ.get(f"CAL_{n}_URL") or "").strip()
            if n <= REPORTED_SOURCE_SLOTS or url:
                slots[n] = bool(url)
            if not url:
                continue
            sources.append(
                {
                    "url": url,
                    "name": (os.environ.get(f"CAL_{n}_NAME") or "").strip() or f"Calendar {n}",
                    "color": (os.environ.get(f"CAL_{n}_COLOR") or "").strip()
                    or DEFAULT_SOURCE_COLORS[(n - 1) % len(DEFAULT_SOURCE_COLORS)],
                }
            )

        return sources, slots

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Recognizes:
        - CAL_<n>_URL / CAL_<n>_NAME / CAL_<n>_COLOR -> 'sources', 'configured_slots'
        - API_SECRET -> 'api_secret'
        - FAMILYCAL_WEB_HOST -> 'web_host'
        - FAMILYCAL_WEB_PORT -> 'web_port' (int)
        - FAMILYCAL_WINDOW_PAST_DAYS / FAMILYCAL_WINDOW_FUTURE_DAYS (int)
        - FAMILYCAL_MAX_OCCURRENCES -> 'max_occurrences' (int)
        - FAMILYCAL_MAX_ITERATIONS -> 'max_iterations' (int)
        - FAMILYCAL_CACHE_TTL -> 'cache_ttl_seconds' (float)
        - FAMILYCAL_REQUEST_TIMEOUT -> 'request_timeout' (float)
        - FAMILYCAL_MAX_RETRIES -> 'max_retries' (int)
        - FAMILYCAL_RETRY_BACKOFF -> 'retry_backoff_factor' (float)
        - FAMILYCAL_DEFAULT_TIMEZONE -> 'default_timezone'
        - FAMILYCAL_DEBUG -> 'debug'

        Returns:
            Configuration dictionary accepted by LiteAppSettings
        """
        cfg: dict[str, Any] = {}

        sources, slots = self.build_sources_from_env()
        cfg["sources"] = sources
        cfg["configured_slots"] = slots

        api_secret = os.environ.get("API_SECRET")
        if api_secret:
            cfg["api_secret"] = api_secret

        host = os.environ.get("FAMILYCAL_WEB_HOST")
        if host:
            cfg["web_host"] = host

        numeric: list[tuple[str, str, Callable[[str], Any]]] = [
            ("FAMILYCAL_WEB_PORT", "web_port", int),
            ("FAMILYCAL_WINDOW_PAST_DAYS", "window_past_days", int),
            ("FAMILYCAL_WINDOW_FUTURE_DAYS", "window_future_days", int),
            ("FAMILYCAL_MAX_OCCURRENCES", "max_occurrences", int),
            ("FAMILYCAL_MAX_ITERATIONS", "max_iterations", int),
            ("FAMILYCAL_CACHE_TTL", "cache_ttl_seconds", float),
            ("FAMILYCAL_REQUEST_TIMEOUT", "request_timeout", float),
            ("FAMILYCAL_MAX_RETRIES", "max_retries", int),
            ("FAMILYCAL_RETRY_BACKOFF", "retry_backoff_factor", float),
        ]
        for env_name, key, cast in numeric:
            value = _parse_number(env_name, cast)
            if value is not None:
                cfg[key] = value

        default_tz = os.environ.get("FAMILYCAL_DEFAULT_TIMEZONE")
        if default_tz:
            cfg["default_timezone"] = default_tz

        cfg["debug"] = os.environ.get("FAMILYCAL_DEBUG", "").strip().lower() in TRUTHY

        return cfg

    def build_settings(self, cfg: dict[str, Any]) -> LiteAppSettings:
        """Validate a configuration dictionary into immutable settings.

        Raises:
            LiteConfigError: If a value is present but unusable (bad color,
                non-positive limit, ...)
        """
        try:
            sources = tuple(LiteCalendarSource(**src) for src in cfg.get("sources", []))
            return LiteAppSettings(**{**cfg, "sources": sources})
        except ValidationError as e:
            raise LiteConfigError(f"Invalid configuration: {e}") from e

    def load_settings(self) -> LiteAppSettings:
        """Load .env file and build settings from environment.

        This is the main entry point for loading configuration.
        """
        self.load_env_file()
        settings = self.build_settings(self.build_config_from_env())
        logger.debug(
            "Configured %d calendar sources: %s",
            len(settings.sources),
            ", ".join(source.name for source in settings.sources) or "<none>",
        )
        return settings


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and model objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
