"""Pytest configuration and fixtures for iqfetch tests."""
import logging

import pytest

from iqfetch.obs.logs import LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_iqfetch_logging():
    """Drop handlers a test installed so later tests never write to closed streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
