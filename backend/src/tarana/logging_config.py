"""Structured logging for the referral and credit service.

Events are snake_case names (``credits_consumed``, ``tier_drift_repaired``)
with key/value context. Every line carries the service name and
environment so API and CLI output can be told apart once aggregated.
"""

import logging
import sys

import structlog

from tarana.settings import settings


def add_service_context(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("env", settings.env)
    return event_dict


def configure_logging() -> None:
    """Configure structlog and route stdlib logging to stdout.

    ``LOG_FORMAT=json`` gives one JSON object per line; anything else gives
    the coloured console renderer.
    """
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_service_context,
    ]

    if settings.log_format == "json":
        processors = shared + [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    level = logging.getLevelName(settings.log_level.upper())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # SQLAlchemy, alembic and uvicorn log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
