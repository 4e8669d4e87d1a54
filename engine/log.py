"""Structured logging for the engine.

Library modules only ask for loggers; the process entry point (the dashboard
app) calls configure_logging once at startup.
"""

import logging
import sys

import structlog

from engine.config import get_settings


def configure_logging(level: str | None = None, json: bool | None = None) -> None:
    settings = get_settings()
    level = level or settings.log_level
    json = settings.log_json if json is None else json

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("engine").setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
