"""
Pytest configuration shared by the service and performance suites.
"""

import pytest
import structlog

from shared.logging import clear_context


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo structlog configuration and correlation context between tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    clear_context()
