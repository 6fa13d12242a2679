"""
Structured logging for sorm.

The mapper, hook runner and query logger all log through :func:`get_logger`.
:func:`configure_logging` is optional; an application that already configures
structlog keeps its own setup.

Examples:
    >>> from sorm.logging import configure_logging
    >>> configure_logging(json_format=True)   # level from SORM_LOG_LEVEL

Tags:
    logging, structlog, sorm
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sorm.settings import get_settings


def _add_library(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("library", "sorm")
    return event_dict


def configure_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """Configure structlog for sorm's events.

    Args:
        level: Minimum level; defaults to ``SormSettings.log_level`` so query
            events logged at that level are shown.
        json_format: True for JSON, False for console, None for JSON unless
            stdout is a tty.
    """
    if level is None:
        level = get_settings().log_level
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.dev.set_exc_info,
        _add_library,
    ]
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


__all__ = ["configure_logging", "get_logger"]
