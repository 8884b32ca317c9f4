"""Root test configuration."""

import logging

import pytest
import structlog

from envrefresh.config import Settings
from fakes import FakeClock


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def settings():
    return Settings(_env_file=None, permission_propagation_seconds=30.0)


@pytest.fixture
def clock():
    return FakeClock()
