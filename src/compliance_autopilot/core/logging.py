"""
Structured logging for Compliance Autopilot.

Configures structlog once at startup and hands out loggers. GitHub Actions
shows plain stdout, so the console renderer is used on a tty and JSON
lines otherwise (log shipping, artifact capture).

The rate limiter and retry executor never call :func:`get_logger`
themselves: the composition root (``ResilientClient``) obtains a logger
here and injects it, so the core stays free of logging globals.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None,
                          service="compliance-autopilot")
            │
            ▼
        processor chain:
          1. merge_contextvars      (bind_context values)
          2. TimeStamper(iso)
          3. add_log_level (get_logger binds logger_name)
          4. service metadata
          5. expand AutopilotError values via to_dict()
          6. JSONRenderer | ConsoleRenderer

Examples:
    >>> configure_logging(level="DEBUG", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.warning("retry.attempt_failed", attempt=1, delay_ms=2000)

Tags:
    logging, structlog, observability, json-logging
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from compliance_autopilot.core.errors import AutopilotError

_SERVICE_NAME = "compliance-autopilot"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def _expand_errors(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render classified errors as their structured form."""
    for key, value in event_dict.items():
        if isinstance(value, AutopilotError):
            event_dict[key] = value.to_dict()
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "compliance-autopilot",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the action.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
        _expand_errors,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    The name is bound lazily as the ``logger_name`` key; PrintLogger has no
    ``.name`` for a processor to read.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(framework="soc2", run_id="1234")
        logger.info("evaluation.started")  # includes framework and run_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
]
