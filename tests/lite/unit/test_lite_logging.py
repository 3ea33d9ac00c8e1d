"""Unit tests for familycal_lite.core.lite_logging."""

import logging
from collections.abc import Iterator

import pytest
from colorlog import ColoredFormatter

from familycal_lite.core.lite_logging import (
    build_console_handler,
    configure_lite_logging,
    env_debug_enabled,
    get_logging_status,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.fixture(autouse=True)
def restore_logger_levels() -> Iterator[None]:
    """Put logger levels back so other tests see pytest's defaults."""
    names = ["", "familycal_lite", "httpx", "aiohttp.access", "asyncio"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_build_console_handler_uses_colorlog() -> None:
    handler = build_console_handler()
    assert isinstance(handler.formatter, ColoredFormatter)


@pytest.mark.parametrize(("value", "expected"), [("1", True), ("TRUE", True), ("on", True), ("0", False), ("", False)])
def test_env_debug_enabled(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("FAMILYCAL_DEBUG", value)
    assert env_debug_enabled() is expected


def test_configure_default_levels() -> None:
    configure_lite_logging(debug_mode=False)
    status = get_logging_status()
    assert status["root"] == "INFO"
    assert status["familycal_lite"] == "INFO"
    assert status["httpx"] == "WARNING"
    assert status["aiohttp.access"] == "WARNING"


def test_configure_debug_mode() -> None:
    configure_lite_logging(debug_mode=True)
    assert logging.getLogger("familycal_lite").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_env_debug_forces_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FAMILYCAL_DEBUG", "yes")
    configure_lite_logging(debug_mode=False)
    assert logging.getLogger("familycal_lite").level == logging.DEBUG


def test_force_debug_overrides_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FAMILYCAL_DEBUG", "yes")
    configure_lite_logging(debug_mode=True, force_debug=False)
    assert logging.getLogger("familycal_lite").level == logging.INFO


def test_env_log_level_sets_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FAMILYCAL_LOG_LEVEL", "warning")
    configure_lite_logging()
    assert logging.getLogger().level == logging.WARNING
