"""
Structured logging for spine-orm.

Manifesto:
    Statement-level visibility matters when debugging an ORM: which SQL ran,
    with which parameters, and which constraint it tripped. This module
    configures structlog once so that every component logs key-value events
    in the same shape.

    - **Structures:** JSON output for log aggregation
    - **Correlates:** bound context (entity, table) travels with each event
    - **Flexes:** Console output for development, JSON for production

Architecture:
    ::

        configure_logging(level="DEBUG", json_format=False, service="spine-orm")
            │
            ▼
        structlog processor chain:
          1. filter_by_level (stdlib level of the named logger)
          2. TimeStamper (iso)
          3. merge_contextvars
          4. add_log_level / add_logger_name
          5. add_service_metadata
          6. JSONRenderer (or ConsoleRenderer for dev)
            │
            ▼
        stdlib logging handler (``stream``, stdout by default)

        logger = get_logger(__name__)
        logger.debug("sql_executed", sql="INSERT INTO ...", params=(1, "a"))

Tags:
    logging, structlog, observability, spine-orm
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "spine-orm"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "spine-orm",
    add_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
        stream: Output stream, stdout by default
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    log_level = getattr(logging, level.upper())

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    # Override any existing config so the new stream takes effect
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=log_level,
        force=True,
    )
    logging.getLogger("spineorm").setLevel(log_level)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(entity="MainEntity", operation="persist"):
            persist_repo.persist(main)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
