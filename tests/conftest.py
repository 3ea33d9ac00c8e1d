"""Shared pytest configuration for the familycal_lite test suite."""

from typing import Any


def pytest_configure(config: Any) -> None:
    """Register the markers used across tests/lite."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that run several components together")
    config.addinivalue_line("markers", "fast: Tests that finish in well under a second")
