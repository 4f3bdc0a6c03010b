"""
Structured logging configuration for Social Backend.

structlog sits on top of stdlib logging, so erasure modules (structlog)
and API modules (``logging.getLogger``) share one handler and one renderer.
Every record carries ``service`` so erasure audit lines can be filtered
out of a shared log stream. SQL statement logging follows the database
echo setting instead of the global level.

Usage:
    from social_backend.lib.logging import setup_logging

    setup_logging()  # Call once at application startup
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from social_backend.config.settings import DatabaseSettings

SERVICE_NAME = "social-backend"

_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")
_SQL_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def add_service_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(database_echo: bool | None = None) -> None:
    """
    Configure structlog and stdlib logging for the application.

    In development (SOCIAL_DEV_MODE=1): human-readable colored console output.
    In production: JSON-formatted structured logs.

    Args:
        database_echo: Log SQL statements at INFO. Defaults to
            SOCIAL_DATABASE_ECHO; when off, SQLAlchemy is held at WARNING.
    """
    dev_mode = os.environ.get("SOCIAL_DEV_MODE") == "1"
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if database_echo is None:
        database_echo = DatabaseSettings.from_env().echo

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if dev_mode:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib records (API modules, SQLAlchemy) go through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    sql_level = logging.INFO if database_echo else logging.WARNING
    for sql_logger in _SQL_LOGGERS:
        logging.getLogger(sql_logger).setLevel(sql_level)


__all__ = ["SERVICE_NAME", "add_service_name", "setup_logging"]
