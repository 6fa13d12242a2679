"""
Row decoder: DB-API result rows into records.

Manifesto:
    Result columns are matched to record fields by name, once per result
    set, before any row is read. A column nobody claims is a mapping bug,
    so decoding refuses to start and reports every such column at once.

Architecture:
    ::

        cursor.description ──► column names
                                   │  per column, first match wins:
                                   │    1. explicit sql annotation
                                   │    2. declared field name
                                   │    3. camel_to_snake(field name)
                                   ▼
                            [FieldDescriptor, ...]  (or UnresolvedColumnError)
                                   │
        cursor.fetchone() ──► new_record() ──► override_scan()? ──► assign
                                   │
                                   ▼
                             out.append(record)

Guardrails:
    A failure mid-way leaves the rows decoded so far in ``out``; callers
    must treat the whole result as unusable.

Tags:
    decoding, rows, cursor, dbapi, sorm
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sorm.catalog import FieldDescriptor, TypeDescriptor, describe, new_record
from sorm.errors import ExecutionError, InputShapeError, UnresolvedColumnError
from sorm.naming import default_column_name
from sorm.protocols import Cursor, OverrideScanner

OPERATION = "scan_rows"


def column_names(cursor: Cursor, *, operation: str = OPERATION) -> list[str]:
    """Result column names from ``cursor.description``."""
    try:
        description = cursor.description
    except Exception as exc:
        raise ExecutionError(f"{operation}: {exc}", operation=operation, cause=exc) from exc
    if description is None:
        raise ExecutionError(
            f"{operation}: statement did not return a result set", operation=operation
        )
    return [col[0] for col in description]


def resolve_columns(
    descriptor: TypeDescriptor, names: Sequence[str], *, operation: str = OPERATION
) -> list[FieldDescriptor]:
    """Match every result column to a field, or raise listing all misses."""
    resolved: list[FieldDescriptor] = []
    missing: list[str] = []

    for name in names:
        f = _match(descriptor, name)
        if f is None:
            missing.append(name)
        else:
            resolved.append(f)

    if missing:
        raise UnresolvedColumnError(
            f"{operation}: couldn't find fields on {descriptor.name} "
            f"for these sql fields: {missing}",
            missing=missing,
            operation=operation,
            record_type=descriptor.name,
        )
    return resolved


def _match(descriptor: TypeDescriptor, name: str) -> FieldDescriptor | None:
    tagged = [f for f in descriptor.fields_with_column_tag(name) if not f.excluded]
    if len(tagged) == 1:
        return tagged[0]

    for f in descriptor.fields:
        if f.name == name and not f.excluded:
            return f

    for f in descriptor.fields:
        if default_column_name(f.name) == name and not f.excluded:
            return f

    return None


def scan_rows(
    cursor: Cursor,
    record_type: type,
    out: list | None = None,
    *,
    operation: str = OPERATION,
) -> list:
    """Decode every remaining row of ``cursor`` into ``record_type`` records.

    Args:
        cursor: DB-API cursor positioned before the first row.
        record_type: Dataclass type to decode into.
        out: List to append to; a new list is created when omitted.

    Returns:
        ``out``, with one record appended per row in arrival order.

    Raises:
        InputShapeError: ``out`` is not a list or ``record_type`` is not a
            dataclass type.
        UnresolvedColumnError: Some result columns match no field.
        ExecutionError: Fetching or assigning a row failed.
    """
    if out is None:
        out = []
    elif not isinstance(out, list):
        kind = type(out).__name__
        raise InputShapeError(
            f"{operation}: expected output to be a list; was instead {kind}",
            operation=operation,
            kind=kind,
        )

    if not isinstance(record_type, type):
        kind = type(record_type).__name__
        raise InputShapeError(
            f"{operation}: expected a record type; was instead {kind} value",
            operation=operation,
            kind=kind,
        )

    descriptor = describe(record_type)
    names = column_names(cursor, operation=operation)
    resolved = resolve_columns(descriptor, names, operation=operation)
    field_names = [f.name for f in resolved]

    while True:
        try:
            row = cursor.fetchone()
        except Exception as exc:
            raise ExecutionError(
                f"{operation}: {exc}", operation=operation, cause=exc
            ) from exc
        if row is None:
            break

        record = new_record(record_type)
        try:
            _assign(record, resolved, field_names, row)
        except Exception as exc:
            raise ExecutionError(
                f"{operation}: could not decode row into {descriptor.name}: {exc}",
                operation=operation,
                record_type=descriptor.name,
                cause=exc,
            ) from exc
        out.append(record)

    return out


def _assign(
    record: Any,
    resolved: list[FieldDescriptor],
    field_names: list[str],
    row: Sequence[Any],
) -> None:
    if len(row) != len(resolved):
        raise ValueError(f"expected {len(resolved)} values, got {len(row)}")

    slots: list[Any] = [None] * len(resolved)
    if isinstance(record, OverrideScanner):
        record.override_scan(list(field_names), slots)

    for i, f in enumerate(resolved):
        if slots[i] is not None:
            slots[i].scan(row[i])
        else:
            f.set(record, row[i])


__all__ = ["scan_rows", "resolve_columns", "column_names"]
