"""
Shared fixtures.

Library code emits HUMAN events through the stdlib logging pipeline, so
every test runs with logging configured the way the CLI configures it.
"""

import logging

import pytest
import structlog

from pkgsrc.config.schema import LoggingConfig
from pkgsrc.logging import configure_logging


@pytest.fixture(autouse=True)
def quiet_logging():
    configure_logging(LoggingConfig(), quiet=True)
    yield
    logging.root.handlers.clear()
    structlog.reset_defaults()
