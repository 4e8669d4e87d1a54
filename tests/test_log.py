import logging

import structlog

import engine.services  # noqa: F401
from engine.log import configure_logging, get_logger


def test_importing_engine_leaves_logging_unconfigured():
    assert not structlog.is_configured()
    assert get_logger("engine.test") is not None


def test_configure_logging_sets_engine_level():
    try:
        configure_logging(level="DEBUG", json=True)

        assert structlog.is_configured()
        assert logging.getLogger("engine").level == logging.DEBUG
    finally:
        structlog.reset_defaults()
        logging.getLogger("engine").setLevel(logging.NOTSET)
