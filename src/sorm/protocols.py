"""
Structural protocols consumed by the mapper.

Manifesto:
    The mapper never imports a database driver. Anything shaped like a
    DB-API 2.0 connection (``sqlite3.Connection``, a psycopg connection, a
    SQLAlchemy bridge) is a :class:`Querier`; anything shaped like a DB-API
    cursor is a :class:`Cursor`.

Architecture:
    ::

        Querier
        ├── execute(sql, params)  → Cursor    "execute" / "query"
        │                                     "query single row" = .fetchone()
        TransactionalQuerier(Querier)
        ├── commit()
        └── rollback()

        Cursor
        ├── description           → [(name, ...), ...]
        └── fetchone()            → row | None

        Scanner / OverrideScanner: custom per-column decode targets

Tags:
    protocol, connection, cursor, dbapi, sorm
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cursor(Protocol):
    """Minimal DB-API 2.0 cursor."""

    @property
    def description(self) -> Sequence[Sequence[Any]] | None: ...

    def fetchone(self) -> Any: ...


@runtime_checkable
class Querier(Protocol):
    """
    Anything that can execute a parameterized statement and return a cursor.

    ``sqlite3.Connection`` satisfies this directly. Parameters are always
    passed positionally, in placeholder-number order.
    """

    def execute(self, sql: str, params: Sequence[Any] = ...) -> Any: ...


@runtime_checkable
class TransactionalQuerier(Querier, Protocol):
    """A :class:`Querier` that owns a transaction (a DB-API connection)."""

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class Scanner(Protocol):
    """Custom decode target for a single result column."""

    def scan(self, value: Any) -> None: ...


@runtime_checkable
class OverrideScanner(Protocol):
    """
    Record capability supplying custom decode targets.

    Called once per row with the declared field names matched to each
    result column and a same-length list of ``None`` slots. Filling a slot
    with a :class:`Scanner` routes that column's value to it instead of the
    field.

    Example:
        >>> @dataclass
        ... class Event:
        ...     id: int = 0
        ...     tags: list = field(default_factory=list)
        ...
        ...     def override_scan(self, names, slots):
        ...         for i, name in enumerate(names):
        ...             if name == "tags":
        ...                 slots[i] = CommaSeparated(self.tags)
    """

    def override_scan(self, names: list[str], slots: list[Scanner | None]) -> None: ...


__all__ = [
    "Cursor",
    "Querier",
    "TransactionalQuerier",
    "Scanner",
    "OverrideScanner",
]
