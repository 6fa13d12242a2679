"""
Mapper configuration: placeholder prefix, dialect and query logger.

A :class:`MapperConfig` is an immutable value. A :class:`~sorm.mapper.Mapper`
built with an explicit config always uses it; a mapper built without one
(including the module-level functions in :mod:`sorm`) reads the process
default at the start of every operation.

The process default is built lazily from :class:`~sorm.settings.SormSettings`
and replaced wholesale by the setters below (last writer wins). Statements
already synthesized are unaffected by later changes. Callers that mutate the
default while other threads run operations get no ordering guarantee; pass an
explicit config instead.

Examples:
    >>> set_parameter_prefix("?")
    >>> get_config().parameter(2)
    '?2'

    >>> cfg = MapperConfig(parameter_prefix=":", dialect=get_dialect("oracle"))
    >>> Mapper(cfg)   # unaffected by the process default
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sorm.dialect import Dialect, SQLiteDialect, get_dialect
from sorm.querylog import QueryLogger, QueryLoggerFunc, StructlogQueryLogger
from sorm.settings import SormSettings, get_settings

DEFAULT_PARAMETER_PREFIX = "$"


@dataclass(frozen=True)
class MapperConfig:
    parameter_prefix: str = DEFAULT_PARAMETER_PREFIX
    dialect: Dialect = field(default_factory=SQLiteDialect)
    query_logger: QueryLogger | None = None

    def parameter(self, n: int) -> str:
        """Placeholder for the ``n``-th (1-based) argument."""
        return f"{self.parameter_prefix or DEFAULT_PARAMETER_PREFIX}{n}"

    def replace(self, **changes: Any) -> MapperConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_settings(cls, settings: SormSettings | None = None) -> MapperConfig:
        settings = settings or get_settings()
        logger = None
        if settings.log_queries:
            slow = settings.slow_query_ms / 1000 if settings.slow_query_ms is not None else None
            logger = StructlogQueryLogger(level=settings.log_level, slow_query_seconds=slow)
        return cls(
            parameter_prefix=settings.parameter_prefix,
            dialect=get_dialect(settings.dialect),
            query_logger=logger,
        )


_default: MapperConfig | None = None
_lock = threading.Lock()


def get_config() -> MapperConfig:
    """Current process-default config, built from settings on first use."""
    global _default
    config = _default
    if config is None:
        built = MapperConfig.from_settings()
        with _lock:
            if _default is None:
                _default = built
            config = _default
    return config


def set_config(config: MapperConfig) -> None:
    global _default
    with _lock:
        _default = config


def configure(**changes: Any) -> MapperConfig:
    """Replace fields of the process default; returns the new config."""
    global _default
    current = get_config()
    with _lock:
        _default = (_default or current).replace(**changes)
        return _default


def reset_config() -> None:
    """Forget the process default so the next use rebuilds it from settings."""
    global _default
    with _lock:
        _default = None


def set_parameter_prefix(prefix: str) -> None:
    configure(parameter_prefix=prefix)


def set_dialect(dialect: Dialect | str) -> None:
    configure(dialect=get_dialect(dialect) if isinstance(dialect, str) else dialect)


def set_query_logger(logger: QueryLogger | None) -> None:
    configure(query_logger=logger)


def set_query_logger_func(fn: Callable[[str, Sequence[Any]], None]) -> None:
    set_query_logger(QueryLoggerFunc(fn))


__all__ = [
    "MapperConfig",
    "get_config",
    "set_config",
    "configure",
    "reset_config",
    "set_parameter_prefix",
    "set_dialect",
    "set_query_logger",
    "set_query_logger_func",
]
