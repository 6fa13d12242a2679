"""
Statement synthesis: records in, parameterized SQL out.

:class:`Mapper` turns record types and instances into ``select`` / ``insert``
/ ``update`` / ``delete`` statements, runs them on a caller-supplied
:class:`~sorm.protocols.Querier` and decodes the results. The module-level
functions are the same operations on a mapper that follows the process
default :class:`~sorm.config.MapperConfig`.

Manifesto:
    - **No schema code:** Table and column names come from the record type
    - **Minimal updates:** ``save_record`` re-reads the stored row and only
      writes the columns that changed; nothing changed means no statement
    - **Composite identities:** Every ``id``-tagged field takes part in the
      WHERE clause, in declared order
    - **Caller-owned transactions:** Mutations run on the transaction they
      are given; only ``save_record_with_transaction`` commits or rolls back

Architecture:
    ::

        save_record(tx, person)
        │
        ├── before_save hook
        ├── select * from people where id = $1 limit 1     (snapshot)
        ├── diff fields (== per field, readonly/excluded/id skipped)
        ├── nothing changed? ──► return False
        ├── update people set name = $2 where id = $1
        └── after_save hook

        create_record(tx, person)   person.id == 0
        │
        ├── before_create hook
        ├── insert into people (name, email) values ($1, $2)
        ├── select last_insert_rowid()          (dialect-specific)
        ├── person.id = <generated id>
        └── after_create hook

Examples:
    >>> conn = sqlite3.connect(":memory:")
    >>> set_parameter_prefix("?")
    >>> people = find_where(conn, Person, "where age > ?1", 30)
    >>> person = find_first_where(conn, Person, "where id = ?1", 7)
    >>> person.name = "Ada"
    >>> save_record(conn, person)
    True

Tags:
    orm, mapping, sql, statements, diff, transactions, sorm
"""

from __future__ import annotations

import numbers
import uuid
from collections.abc import Collection, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sorm.catalog import TypeDescriptor, describe, record_type_of
from sorm.config import MapperConfig, get_config
from sorm.decoder import scan_rows
from sorm.errors import (
    ExecutionError,
    InputShapeError,
    MissingIdentityError,
    NoRowsError,
)
from sorm.hooks import run_hook
from sorm.logging import get_logger
from sorm.protocols import Querier, TransactionalQuerier
from sorm.querylog import observe

logger = get_logger(__name__)

_EMPTY_WHEN_FALSY = (numbers.Number, str, bytes, bytearray, Collection)


def is_zero(value: Any) -> bool:
    """``None``, zero numbers, empty strings and containers, the nil UUID,
    and any other value equal to its type's no-argument instance."""
    if value is None:
        return True
    if isinstance(value, _EMPTY_WHEN_FALSY):
        return not value
    if isinstance(value, uuid.UUID):
        return value.int == 0
    try:
        zero = type(value)()
    except (TypeError, ValueError):
        return False
    return bool(value == zero)


def _join(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def _close(cursor: Any) -> None:
    close = getattr(cursor, "close", None)
    if close is not None:
        close()


class Mapper:
    """Synthesizes and runs statements for dataclass records.

    Parameters:
        config: Explicit configuration. When omitted, every operation uses
            the process default returned by :func:`sorm.config.get_config`
            at the time it starts.
    """

    def __init__(self, config: MapperConfig | None = None) -> None:
        self._config = config

    @property
    def config(self) -> MapperConfig:
        return self._config or get_config()

    # -- Low-level execution -----------------------------------------------

    def _run(self, conn: Querier, query: str, args: Sequence[Any], operation: str) -> Any:
        try:
            return conn.execute(query, tuple(args))
        except Exception as exc:
            raise ExecutionError(
                f"{operation}: {exc}", operation=operation, cause=exc
            ).with_context(query=query) from exc

    def _execute(
        self,
        config: MapperConfig,
        conn: Querier,
        query: str,
        args: Sequence[Any],
        operation: str,
    ) -> None:
        with observe(config.query_logger, query, args):
            _close(self._run(conn, query, args, operation))

    def _query_row(
        self,
        config: MapperConfig,
        conn: Querier,
        query: str,
        args: Sequence[Any],
        operation: str,
    ) -> Any:
        with observe(config.query_logger, query, args):
            cursor = self._run(conn, query, args, operation)
            try:
                return cursor.fetchone()
            except Exception as exc:
                raise ExecutionError(
                    f"{operation}: {exc}", operation=operation, cause=exc
                ).with_context(query=query) from exc
            finally:
                _close(cursor)

    # -- Reads -------------------------------------------------------------

    def _find_where(
        self,
        config: MapperConfig,
        conn: Querier,
        record_type: type,
        where: str,
        args: Sequence[Any],
        operation: str,
    ) -> list:
        descriptor = describe(record_type)
        query = _join("select * from", descriptor.table, where)

        with observe(config.query_logger, query, args):
            cursor = self._run(conn, query, args, operation)
            try:
                return scan_rows(cursor, record_type, operation=operation)
            finally:
                _close(cursor)

    def _find_first_where(
        self,
        config: MapperConfig,
        conn: Querier,
        record_type: type,
        where: str,
        args: Sequence[Any],
        operation: str,
    ) -> Any:
        records = self._find_where(
            config,
            conn,
            record_type,
            _join(where, config.dialect.limit_one()),
            args,
            operation,
        )
        if not records:
            raise NoRowsError(
                f"{operation}: no rows in result set",
                operation=operation,
                record_type=record_type.__name__,
            )
        return records[0]

    def find_where(self, conn: Querier, record_type: Any, where: str = "", *args: Any) -> list:
        """``select * from <table> <where>``, decoded into records.

        ``where`` is a raw fragment (``"where age > $1 order by name"``);
        ``args`` bind to its placeholders.
        """
        record_type = record_type_of(record_type, operation="find_where")
        return self._find_where(self.config, conn, record_type, where, args, "find_where")

    def find_all(self, conn: Querier, record_type: Any) -> list:
        return self.find_where(conn, record_type, "")

    def find_first_where(self, conn: Querier, record_type: Any, where: str = "", *args: Any) -> Any:
        """First record matching ``where``.

        Raises:
            NoRowsError: The query returned no rows.
        """
        record_type = record_type_of(record_type, operation="find_first_where")
        return self._find_first_where(
            self.config, conn, record_type, where, args, "find_first_where"
        )

    def find_first(self, conn: Querier, record_type: Any) -> Any:
        return self.find_first_where(conn, record_type, "")

    def count_where(self, conn: Querier, record_type: Any, where: str = "", *args: Any) -> int:
        """``select count(*) from <table> <where>``."""
        operation = "count_where"
        config = self.config
        descriptor = describe(record_type_of(record_type, operation=operation))
        query = _join("select count(*) from", descriptor.table, where)

        row = self._query_row(config, conn, query, args, operation)
        if row is None:
            raise NoRowsError(
                f"{operation}: no rows in result set",
                operation=operation,
                record_type=descriptor.name,
            )
        return int(row[0])

    def count_all(self, conn: Querier, record_type: Any) -> int:
        return self.count_where(conn, record_type, "")

    # -- Writes ------------------------------------------------------------

    def _require_record(self, record: Any, operation: str) -> type:
        if isinstance(record, type):
            raise InputShapeError(
                f"{operation}: expected a record instance; was instead type {record.__name__}",
                operation=operation,
                kind=f"type {record.__name__}",
            )
        return record_type_of(record, operation=operation)

    def _require_identity(self, descriptor: TypeDescriptor, operation: str) -> None:
        if not descriptor.identity_fields:
            raise MissingIdentityError(
                f"{operation}: couldn't determine id field(s) of {descriptor.name}",
                operation=operation,
                record_type=descriptor.name,
            )

    def _identity_where(
        self,
        config: MapperConfig,
        descriptor: TypeDescriptor,
        record: Any,
        args: list[Any],
    ) -> str:
        clauses = []
        for f in descriptor.identity_fields:
            args.append(f.get(record))
            clauses.append(f"{f.column} = {config.parameter(len(args))}")
        return "where " + " and ".join(clauses)

    def create_record(self, tx: Querier, record: Any) -> None:
        """Insert ``record``.

        When the record's only identity is its ``id`` field and that field is
        zero (``None``, ``0``, ``""``), the column is left out of the INSERT
        and the database-generated value is read back into ``record.id``.
        """
        operation = "create_record"
        config = self.config
        record_type = self._require_record(record, operation)

        run_hook(record, "before_create", tx, operation=operation)

        descriptor = describe(record_type)
        self._require_identity(descriptor, operation)

        columns: list[str] = []
        placeholders: list[str] = []
        args: list[Any] = []
        fetch_id = False

        for f in descriptor.mapped_fields:
            value = f.get(record)
            if descriptor.has_default_identity and f.is_id and is_zero(value):
                fetch_id = True
                continue
            args.append(value)
            columns.append(f.column)
            placeholders.append(config.parameter(len(args)))

        id_query = config.dialect.last_insert_id_query() if fetch_id else None

        if columns:
            query = (
                f"insert into {descriptor.table} ({', '.join(columns)}) "
                f"values ({', '.join(placeholders)})"
            )
        else:
            query = f"insert into {descriptor.table} default values"

        self._execute(config, tx, query, args, operation)

        if id_query is not None:
            row = self._query_row(config, tx, id_query, (), operation)
            if row is None:
                raise NoRowsError(
                    f"{operation}: couldn't fetch insert id",
                    operation=operation,
                    record_type=descriptor.name,
                )
            descriptor.identity_fields[0].set(record, row[0])
            logger.debug("generated_id_fetched", table=descriptor.table, id=row[0])

        run_hook(record, "after_create", tx, operation=operation)

    def save_record(self, tx: Querier, record: Any) -> bool:
        """Update the columns of ``record`` that differ from the stored row.

        Returns:
            ``True`` if an UPDATE was issued, ``False`` if nothing changed.

        Raises:
            NoRowsError: No stored row matches the record's identity.
        """
        operation = "save_record"
        config = self.config
        record_type = self._require_record(record, operation)

        run_hook(record, "before_save", tx, operation=operation)

        descriptor = describe(record_type)
        self._require_identity(descriptor, operation)

        args: list[Any] = []
        where = self._identity_where(config, descriptor, record, args)

        try:
            previous = self._find_first_where(
                config, tx, record_type, where, list(args), operation
            )
        except NoRowsError as exc:
            raise NoRowsError(
                f"{operation}: couldn't find record",
                operation=operation,
                record_type=descriptor.name,
                cause=exc,
            ) from exc

        assignments = []
        for f in descriptor.mapped_fields:
            if f.readonly or f.is_id:
                continue
            current = f.get(record)
            if f.get(previous) == current:
                continue
            args.append(current)
            assignments.append(f"{f.column} = {config.parameter(len(args))}")

        if not assignments:
            logger.debug("save_skipped", table=descriptor.table, reason="unchanged")
            return False

        query = f"update {descriptor.table} set {', '.join(assignments)} {where}"
        self._execute(config, tx, query, args, operation)

        run_hook(record, "after_save", tx, operation=operation)
        return True

    def replace_record(self, tx: Querier, record: Any) -> None:
        """Insert ``record`` or replace the stored row with the same identity.

        Every mapped column is written, identity included; no generated
        identity is fetched.
        """
        operation = "replace_record"
        config = self.config
        record_type = self._require_record(record, operation)

        run_hook(record, "before_replace", tx, operation=operation)

        descriptor = describe(record_type)
        self._require_identity(descriptor, operation)

        fields = descriptor.mapped_fields
        args = [f.get(record) for f in fields]
        query = config.dialect.replace_into(
            descriptor.table,
            [f.column for f in fields],
            [f.column for f in descriptor.identity_fields],
            [config.parameter(i + 1) for i in range(len(args))],
        )
        self._execute(config, tx, query, args, operation)

        run_hook(record, "after_replace", tx, operation=operation)

    def delete_record(self, tx: Querier, record: Any) -> None:
        """``delete from <table> where <identity>``."""
        operation = "delete_record"
        config = self.config
        record_type = self._require_record(record, operation)

        run_hook(record, "before_delete", tx, operation=operation)

        descriptor = describe(record_type)
        self._require_identity(descriptor, operation)

        args: list[Any] = []
        where = self._identity_where(config, descriptor, record, args)
        self._execute(config, tx, f"delete from {descriptor.table} {where}", args, operation)

        run_hook(record, "after_delete", tx, operation=operation)

    # -- Transactions ------------------------------------------------------

    def save_record_with_transaction(self, conn: TransactionalQuerier, record: Any) -> bool:
        """:meth:`save_record` in its own transaction on ``conn``.

        Commits on success; rolls back if the save or the commit fails.
        """
        operation = "save_record_with_transaction"
        try:
            updated = self.save_record(conn, record)
        except Exception:
            _rollback(conn, operation)
            raise

        try:
            conn.commit()
        except Exception as exc:
            _rollback(conn, operation)
            raise ExecutionError(
                f"{operation}: couldn't commit transaction: {exc}",
                operation=operation,
                cause=exc,
            ) from exc
        return updated


def _rollback(conn: TransactionalQuerier, operation: str) -> None:
    try:
        conn.rollback()
    except Exception as exc:
        # The original failure is what propagates.
        logger.warning("rollback_failed", operation=operation, error=str(exc))


@contextmanager
def transaction(conn: TransactionalQuerier) -> Iterator[TransactionalQuerier]:
    """Commit ``conn`` when the block succeeds, roll it back when it raises.

    Example:
        >>> with transaction(conn) as tx:
        ...     create_record(tx, invoice)
        ...     save_record(tx, customer)
    """
    try:
        yield conn
    except BaseException:
        _rollback(conn, "transaction")
        raise
    try:
        conn.commit()
    except Exception as exc:
        _rollback(conn, "transaction")
        raise ExecutionError(
            f"transaction: couldn't commit transaction: {exc}",
            operation="transaction",
            cause=exc,
        ) from exc


# =========================================================================
# Module-level API (process default configuration)
# =========================================================================

_default_mapper = Mapper()


def find_where(conn: Querier, record_type: Any, where: str = "", *args: Any) -> list:
    return _default_mapper.find_where(conn, record_type, where, *args)


def find_all(conn: Querier, record_type: Any) -> list:
    return _default_mapper.find_all(conn, record_type)


def find_first_where(conn: Querier, record_type: Any, where: str = "", *args: Any) -> Any:
    return _default_mapper.find_first_where(conn, record_type, where, *args)


def find_first(conn: Querier, record_type: Any) -> Any:
    return _default_mapper.find_first(conn, record_type)


def count_where(conn: Querier, record_type: Any, where: str = "", *args: Any) -> int:
    return _default_mapper.count_where(conn, record_type, where, *args)


def count_all(conn: Querier, record_type: Any) -> int:
    return _default_mapper.count_all(conn, record_type)


def create_record(tx: Querier, record: Any) -> None:
    _default_mapper.create_record(tx, record)


def save_record(tx: Querier, record: Any) -> bool:
    return _default_mapper.save_record(tx, record)


def save_record_with_transaction(conn: TransactionalQuerier, record: Any) -> bool:
    return _default_mapper.save_record_with_transaction(conn, record)


def replace_record(tx: Querier, record: Any) -> None:
    _default_mapper.replace_record(tx, record)


def delete_record(tx: Querier, record: Any) -> None:
    _default_mapper.delete_record(tx, record)


__all__ = [
    "Mapper",
    "is_zero",
    "transaction",
    "find_where",
    "find_all",
    "find_first_where",
    "find_first",
    "count_where",
    "count_all",
    "create_record",
    "save_record",
    "save_record_with_transaction",
    "replace_record",
    "delete_record",
]
