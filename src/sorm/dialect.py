"""SQL dialect abstraction for the store-specific parts of the mapper.

The mapper's statements are plain ANSI SQL except for a handful of
fragments that differ per store: the single-row limit, limit/offset
pagination, replace-by-primary-key, and how a database-generated identity
is read back after an INSERT. Those fragments come from a ``Dialect``, as
does the SQLAlchemy dialect used to render query-builder expressions.

Placeholders are *not* a dialect concern here: they are numbered by the
mapper (``$1``, ``?1``, ``:1`` ...) according to the configured parameter
prefix. Dialect methods receive them pre-rendered, except
``limit_offset``, which binds its values through a callback so that
numbering follows the order the clauses appear in the text.

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌────────┐ ┌────────┐ ┌──────────────┐
    │ SQLite   │ │ PostgreSQL   │ │  DB2   │ │ MySQL  │ │  Oracle      │
    │ limit 1  │ │ limit 1      │ │ fetch  │ │limit 1 │ │ fetch first  │
    │ insert or│ │ on conflict  │ │ merge  │ │replace │ │ merge        │
    │ replace  │ │ do update    │ │        │ │ into   │ │              │
    │ last_    │ │ lastval()    │ │identity│ │last_   │ │ (none)       │
    │ insert_  │ │              │ │_val_   │ │insert_ │ │              │
    │ rowid()  │ │              │ │local() │ │id()    │ │              │
    └──────────┘ └──────────────┘ └────────┘ └────────┘ └──────────────┘

Examples:
    >>> from sorm.dialect import get_dialect
    >>> d = get_dialect("postgresql")
    >>> d.last_insert_id_query()
    'select lastval()'
    >>> d.replace_into("people", ["id", "name"], ["id"], ["$1", "$2"])
    'insert into people (id, name) values ($1, $2) on conflict (id) do update set name = excluded.name'

Tags:
    dialect, sql, abstraction, portability, database, sorm
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.dialects.mysql.base import MySQLDialect as _SAMySQLDialect
from sqlalchemy.dialects.oracle.base import OracleDialect as _SAOracleDialect
from sqlalchemy.dialects.postgresql.base import PGDialect as _SAPGDialect
from sqlalchemy.dialects.sqlite.base import SQLiteDialect as _SASQLiteDialect
from sqlalchemy.engine.default import DefaultDialect

from sorm.errors import ConfigError

# Expression fragments are compiled positionally ("%s") and renumbered by
# the query builder.
RENDER_PARAMSTYLE = "format"

# Registers a bound value and returns its placeholder text.
Binder = Callable[[Any], str]


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment (or full statement) with the
    caller's placeholders interpolated verbatim.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def limit_one(self) -> str:
        """Clause restricting a select to its first row."""
        ...

    def limit_offset(self, limit: Any, offset: Any, bind: Binder) -> str:
        """Pagination clause; either value may be ``None`` (absent).

        ``bind`` registers a value and returns its placeholder; it must be
        called in the order the placeholders appear in the returned text.
        """
        ...

    def replace_into(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        placeholders: list[str],
    ) -> str:
        """Insert-or-replace-by-key statement for every given column."""
        ...

    def last_insert_id_query(self) -> str:
        """Single-value query returning the identity generated by the last INSERT."""
        ...

    def sqlalchemy_dialect(self) -> Any:
        """SQLAlchemy dialect used to render query-builder expressions."""
        ...


class _BaseDialect:
    """Shared behaviour; subclasses override what their store does differently."""

    _name = "generic"
    _sqlalchemy_class: type = DefaultDialect

    def __init__(self) -> None:
        self._sa_dialect: Any = None

    @property
    def name(self) -> str:
        return self._name

    def limit_one(self) -> str:
        return "limit 1"

    def limit_offset(self, limit: Any, offset: Any, bind: Binder) -> str:
        parts = []
        if limit is not None:
            parts.append(f"limit {bind(limit)}")
        if offset is not None:
            parts.append(f"offset {bind(offset)}")
        return " ".join(parts)

    def replace_into(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        placeholders: list[str],
    ) -> str:
        cols = ", ".join(columns)
        ph = ", ".join(placeholders)
        return f"insert or replace into {table} ({cols}) values ({ph})"

    def last_insert_id_query(self) -> str:
        raise ConfigError(
            f"dialect {self.name} has no generated-identity query",
            operation="last_insert_id_query",
        )

    def sqlalchemy_dialect(self) -> Any:
        # Stateless once built; a racing double build is harmless.
        if self._sa_dialect is None:
            self._sa_dialect = self._sqlalchemy_class(paramstyle=RENDER_PARAMSTYLE)
        return self._sa_dialect

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SQLiteDialect(_BaseDialect):
    """SQLite: ``insert or replace``, ``last_insert_rowid()``."""

    _name = "sqlite"
    _sqlalchemy_class = _SASQLiteDialect

    def limit_offset(self, limit: Any, offset: Any, bind: Binder) -> str:
        # SQLite only accepts OFFSET after a LIMIT; -1 means "no limit".
        if limit is None and offset is not None:
            return f"limit -1 offset {bind(offset)}"
        return super().limit_offset(limit, offset, bind)

    def last_insert_id_query(self) -> str:
        return "select last_insert_rowid()"


class PostgreSQLDialect(_BaseDialect):
    """PostgreSQL: ``on conflict ... do update``, ``lastval()``."""

    _name = "postgresql"
    _sqlalchemy_class = _SAPGDialect

    def replace_into(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        placeholders: list[str],
    ) -> str:
        cols = ", ".join(columns)
        ph = ", ".join(placeholders)
        keys = ", ".join(key_columns)
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols:
            return f"insert into {table} ({cols}) values ({ph}) on conflict ({keys}) do nothing"
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"insert into {table} ({cols}) values ({ph}) "
            f"on conflict ({keys}) do update set {updates}"
        )

    def last_insert_id_query(self) -> str:
        return "select lastval()"


class MySQLDialect(_BaseDialect):
    """MySQL: ``replace into``, ``last_insert_id()``."""

    _name = "mysql"
    _sqlalchemy_class = _SAMySQLDialect

    def limit_offset(self, limit: Any, offset: Any, bind: Binder) -> str:
        # MySQL has no bare OFFSET; use the documented maximum row count.
        if limit is None and offset is not None:
            return f"limit 18446744073709551615 offset {bind(offset)}"
        return super().limit_offset(limit, offset, bind)

    def replace_into(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        placeholders: list[str],
    ) -> str:
        cols = ", ".join(columns)
        ph = ", ".join(placeholders)
        return f"replace into {table} ({cols}) values ({ph})"

    def last_insert_id_query(self) -> str:
        return "select last_insert_id()"


class _MergeDialect(_BaseDialect):
    """Stores without insert-or-replace: ``merge into`` plus ANSI fetch-first."""

    _merge_source = "(values ({ph})) as src({cols})"

    def limit_one(self) -> str:
        return "fetch first 1 rows only"

    def limit_offset(self, limit: Any, offset: Any, bind: Binder) -> str:
        parts = []
        if offset is not None:
            parts.append(f"offset {bind(offset)} rows")
        if limit is not None:
            parts.append(f"fetch next {bind(limit)} rows only")
        return " ".join(parts)

    def replace_into(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        placeholders: list[str],
    ) -> str:
        src_cols = [f"c{i}" for i in range(len(columns))]
        source = self._merge_source.format(
            ph=", ".join(placeholders),
            cols=", ".join(src_cols),
            aliased=", ".join(f"{p} as {c}" for p, c in zip(placeholders, src_cols)),
        )
        key_matches = " and ".join(
            f"tgt.{k} = src.{src_cols[columns.index(k)]}" for k in key_columns
        )
        update_cols = [c for c in columns if c not in key_columns]
        values = ", ".join(f"src.{c}" for c in src_cols)
        statement = f"merge into {table} tgt using {source} on ({key_matches})"
        if update_cols:
            updates = ", ".join(
                f"tgt.{c} = src.{src_cols[columns.index(c)]}" for c in update_cols
            )
            statement += f" when matched then update set {updates}"
        statement += f" when not matched then insert ({', '.join(columns)}) values ({values})"
        return statement


class DB2Dialect(_MergeDialect):
    """IBM DB2: ``merge into``, ``identity_val_local()``."""

    _name = "db2"

    def last_insert_id_query(self) -> str:
        return "select identity_val_local() from sysibm.sysdummy1"


class OracleDialect(_MergeDialect):
    """Oracle: ``merge into ... using (select ... from dual)``.

    Oracle has no session-level "last identity" function; records with a
    generated identity must be inserted with an explicit value (for example
    from a sequence) or via :meth:`sorm.Mapper.replace_record`.
    """

    _name = "oracle"
    _sqlalchemy_class = _SAOracleDialect
    _merge_source = "(select {aliased} from dual) src"


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ConfigError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ConfigError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}",
            operation="get_dialect",
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Binder",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    "get_dialect",
    "register_dialect",
]
