"""
Structured logging for jkrollout.

Configures structlog once per process (the CLI callback does it) and hands
out bound loggers to every module. Log lines go to stderr so that stdout
carries only command output (the kernel path, JSON results, rendered batch
scripts) and stays safe to capture from provisioning pipelines.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None)
            │
            ▼
        structlog processor chain:
          1. merge_contextvars        (slug, image bound by LogContext)
          2. TimeStamper(iso)
          3. add_log_level            (logger_name bound by get_logger)
          4. _add_service_metadata
          5. JSONRenderer             (or ConsoleRenderer on a TTY)

Examples:
    >>> from jkrollout.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> with LogContext(slug="pytorch-2-9-1"):
    ...     logger.info("kernel.published", path="/tmp/k")

Tags:
    logging, structlog, observability, jkrollout
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


_SERVICE_NAME = "jkrollout"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "WARNING",
    json_format: bool | None = None,
    service: str = "jkrollout",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if stderr is not a tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    if json_format is None:
        json_format = not sys.stderr.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    The name is carried as the ``logger_name`` key; the proxy stays lazy, so
    module-level loggers pick up whatever ``configure_logging`` set later.
    """
    if name:
        return structlog.get_logger(name, logger_name=name)
    return structlog.get_logger()


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(slug="pytorch-2-9-1", image="/home/u/pytorch-2.9.1.sif"):
            logger.info("shim.detected")
        # Context cleared here
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
