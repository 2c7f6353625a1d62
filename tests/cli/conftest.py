"""Fixtures for CLI tests."""

import sys

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def restore_logger():
    """Re-attach logging to the real stderr after each command.

    The CLI callback binds loguru to whatever stderr the test runner swapped in.
    """
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
