"""
Query logging: an optional observer around every statement.

A query logger sees each statement twice: ``log_query`` right before it
runs and, if it also implements :class:`QueryLoggerAfter`,
``log_query_after`` once it finished, with the elapsed time in seconds and
the exception it raised (``None`` on success).

Examples:
    >>> from sorm import set_query_logger_func
    >>> set_query_logger_func(lambda query, args: print(query, args))

    >>> from sorm import MapperConfig, Mapper
    >>> mapper = Mapper(MapperConfig(query_logger=StructlogQueryLogger()))

Tags:
    logging, observability, query, timing, sorm
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from sorm.logging import get_logger


@runtime_checkable
class QueryLogger(Protocol):
    def log_query(self, query: str, args: Sequence[Any]) -> None: ...


@runtime_checkable
class QueryLoggerAfter(Protocol):
    def log_query_after(
        self,
        query: str,
        args: Sequence[Any],
        duration: float,
        error: BaseException | None,
    ) -> None: ...


class QueryLoggerFunc:
    """Adapt a plain ``fn(query, args)`` callable to :class:`QueryLogger`."""

    def __init__(self, fn: Callable[[str, Sequence[Any]], None]):
        self.fn = fn

    def log_query(self, query: str, args: Sequence[Any]) -> None:
        self.fn(query, args)

    def __repr__(self) -> str:
        return f"QueryLoggerFunc({self.fn!r})"


class StructlogQueryLogger:
    """Emit ``query_started`` / ``query_finished`` / ``query_failed`` events.

    Statements slower than ``slow_query_seconds`` are logged at warning
    level as ``query_slow``.
    """

    def __init__(
        self,
        level: str = "debug",
        slow_query_seconds: float | None = None,
        logger: Any = None,
    ):
        self.level = level.lower()
        self.slow_query_seconds = slow_query_seconds
        self._logger = logger or get_logger("sorm.query")

    def log_query(self, query: str, args: Sequence[Any]) -> None:
        getattr(self._logger, self.level)("query_started", query=query, args=list(args))

    def log_query_after(
        self,
        query: str,
        args: Sequence[Any],
        duration: float,
        error: BaseException | None,
    ) -> None:
        duration_ms = round(duration * 1000, 3)
        if error is not None:
            self._logger.warning(
                "query_failed",
                query=query,
                duration_ms=duration_ms,
                error=str(error),
                error_type=type(error).__name__,
            )
        elif self.slow_query_seconds is not None and duration >= self.slow_query_seconds:
            self._logger.warning("query_slow", query=query, duration_ms=duration_ms)
        else:
            getattr(self._logger, self.level)(
                "query_finished", query=query, duration_ms=duration_ms
            )


@contextmanager
def observe(
    logger: QueryLogger | None, query: str, args: Sequence[Any]
) -> Iterator[None]:
    """Invoke both logger hooks around one statement, failures included."""
    if logger is None:
        yield
        return

    logger.log_query(query, args)
    start = time.monotonic()
    try:
        yield
    except BaseException as exc:
        _after(logger, query, args, time.monotonic() - start, exc)
        raise
    _after(logger, query, args, time.monotonic() - start, None)


def _after(
    logger: QueryLogger,
    query: str,
    args: Sequence[Any],
    duration: float,
    error: BaseException | None,
) -> None:
    if isinstance(logger, QueryLoggerAfter):
        logger.log_query_after(query, args, duration, error)


__all__ = [
    "QueryLogger",
    "QueryLoggerAfter",
    "QueryLoggerFunc",
    "StructlogQueryLogger",
    "observe",
]
