"""
Field catalog: per-type mapping metadata, described once and cached.

``describe()`` inspects a dataclass record type, resolves every field's
column name, identity/readonly/excluded flags and the type's table name,
and stores the resulting :class:`TypeDescriptor` in a process-wide registry
keyed by the type object. Descriptors are frozen and never evicted.

Manifesto:
    Every statement the mapper builds starts from the same question: which
    columns does this type have, and which of them identify a row? Answering
    it once per type keeps the hot paths (decode, diff, insert) down to
    attribute lookups.

    - **Write-once registry:** A lock guards insertion; a racing duplicate
      build is discarded and the first stored descriptor wins
    - **Immutable:** Descriptors are frozen dataclasses, safe to share
    - **Flattened embeds:** Embedded records contribute their fields with a
      longer access path

Architecture:
    ::

        describe(Person)
            │
            ├── registry hit ──────────────► TypeDescriptor
            │
            └── miss: _build(Person)
                    │  for each dataclass field (recursing into embeds):
                    │    column   ← sql tag value or camel_to_snake(name)
                    │    excluded ← column == "-"
                    │    is_id    ← "id" param  (fallback: field named "id")
                    │    readonly ← "readonly" param or legacy marker
                    │  table      ← first override or default_table_name()
                    ▼
                _CACHE.setdefault(Person, descriptor)

Examples:
    >>> @dataclass
    ... class BlogPost:
    ...     id: int = 0
    ...     title: str = ""
    >>> describe(BlogPost).table
    'blog_posts'
    >>> [f.column for f in describe(BlogPost).identity_fields]
    ['id']

Tags:
    reflection, metadata, registry, cache, dataclasses, sorm
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import MISSING, dataclass
from typing import Any

from sorm import tags
from sorm.errors import DescribeError, InputShapeError
from sorm.naming import default_column_name, default_table_name
from sorm.tags import Tag, parse_tag

DEFAULT_ID_FIELD = "id"


@dataclass(frozen=True)
class FieldDescriptor:
    """Mapping metadata of one (possibly embedded) record field."""

    name: str
    path: tuple[str, ...]
    column: str
    tag: Tag | None = None
    is_id: bool = False
    excluded: bool = False
    readonly: bool = False
    table: str | None = None

    @property
    def explicit_column(self) -> str | None:
        """Column name given by the ``sql`` annotation, if any."""
        if self.tag is not None and self.tag.value:
            return self.tag.value
        return None

    def get(self, record: Any) -> Any:
        value = record
        for attr in self.path:
            value = getattr(value, attr)
        return value

    def set(self, record: Any, value: Any) -> None:
        target = record
        for attr in self.path[:-1]:
            target = getattr(target, attr)
        object.__setattr__(target, self.path[-1], value)


@dataclass(frozen=True)
class TypeDescriptor:
    """Ordered field descriptors and table name of a record type."""

    name: str
    record_type: type
    fields: tuple[FieldDescriptor, ...]
    table: str

    @property
    def mapped_fields(self) -> tuple[FieldDescriptor, ...]:
        """Fields that take part in statements (excluded ones removed)."""
        return tuple(f for f in self.fields if not f.excluded)

    @property
    def identity_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.is_id)

    @property
    def has_default_identity(self) -> bool:
        """True when the sole identity field is the conventional ``id`` field."""
        ids = self.identity_fields
        return len(ids) == 1 and ids[0].name == DEFAULT_ID_FIELD

    def field(self, name: str) -> FieldDescriptor | None:
        """First field with the given declared name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def fields_with_column_tag(self, column: str) -> list[FieldDescriptor]:
        return [f for f in self.fields if f.explicit_column == column]


_CACHE: dict[type, TypeDescriptor] = {}
_LOCK = threading.Lock()


def record_type_of(value: Any, *, operation: str) -> type:
    """Return the dataclass type of ``value`` (a record type or instance).

    Raises:
        InputShapeError: ``value`` is neither a dataclass type nor a
            dataclass instance.
    """
    record_type = value if isinstance(value, type) else type(value)
    if not dataclasses.is_dataclass(record_type):
        kind = f"type {value.__name__}" if isinstance(value, type) else type(value).__name__
        raise InputShapeError(
            f"{operation}: expected a dataclass record or record type; was instead {kind}",
            operation=operation,
            kind=kind,
        )
    return record_type


def describe(record_or_type: Any) -> TypeDescriptor:
    """Return the cached :class:`TypeDescriptor` for a record type or instance."""
    record_type = record_type_of(record_or_type, operation="describe")

    descriptor = _CACHE.get(record_type)
    if descriptor is not None:
        return descriptor

    built = _build(record_type)
    with _LOCK:
        return _CACHE.setdefault(record_type, built)


def table_name(record_or_type: Any) -> str:
    """Resolved table name of a record type or instance."""
    return describe(record_or_type).table


def clear_cache() -> None:
    """Drop every cached descriptor. Intended for tests."""
    with _LOCK:
        _CACHE.clear()


def new_record(record_type: type) -> Any:
    """Allocate a record without calling ``__init__``.

    Fields are set to their declared default (or default factory result),
    embedded records are allocated recursively, and fields without a
    default start as ``None``.
    """
    record = object.__new__(record_type)
    for f in dataclasses.fields(record_type):
        embed = f.metadata.get(tags.EMBED)
        if embed is not None:
            value = new_record(embed)
        elif f.default is not MISSING:
            value = f.default
        elif f.default_factory is not MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(record, f.name, value)
    return record


def _build(record_type: type) -> TypeDescriptor:
    fields: list[FieldDescriptor] = []
    _collect(record_type, (), fields, seen=(record_type,))

    if not any(f.is_id for f in fields):
        for i, f in enumerate(fields):
            if f.name == DEFAULT_ID_FIELD and not f.excluded:
                fields[i] = dataclasses.replace(f, is_id=True)
                break

    table = None
    for f in fields:
        if f.table:
            table = f.table
            break

    return TypeDescriptor(
        name=record_type.__name__,
        record_type=record_type,
        fields=tuple(fields),
        table=table or default_table_name(record_type.__name__),
    )


def _collect(
    record_type: type,
    prefix: tuple[str, ...],
    out: list[FieldDescriptor],
    seen: tuple[type, ...],
) -> None:
    for f in dataclasses.fields(record_type):
        embed = f.metadata.get(tags.EMBED)
        if embed is not None:
            if not (isinstance(embed, type) and dataclasses.is_dataclass(embed)):
                raise DescribeError(
                    f"describe: embedded field {f.name} of {record_type.__name__} "
                    f"is not a dataclass type: {embed!r}",
                    operation="describe",
                    record_type=record_type.__name__,
                )
            if embed in seen:
                raise DescribeError(
                    f"describe: embedded field {f.name} of {record_type.__name__} "
                    f"recursively embeds {embed.__name__}",
                    operation="describe",
                    record_type=record_type.__name__,
                )
            _collect(embed, prefix + (f.name,), out, seen + (embed,))
            continue

        out.append(_describe_field(record_type, f, prefix))


def _describe_field(
    record_type: type, f: dataclasses.Field, prefix: tuple[str, ...]
) -> FieldDescriptor:
    raw = f.metadata.get(tags.SQL)
    if raw is not None and not isinstance(raw, str):
        raise DescribeError(
            f"describe: sql annotation of {record_type.__name__}.{f.name} "
            f"must be a string; was instead {type(raw).__name__}",
            operation="describe",
            record_type=record_type.__name__,
        )
    tag = parse_tag(raw) if raw is not None else None

    column = tag.value if tag is not None and tag.value else default_column_name(f.name)

    table = f.metadata.get(tags.TABLE) or None
    if table is None and tag is not None:
        table = tag.param("table") or None

    readonly = bool(tag is not None and tag.has("readonly")) or bool(
        f.metadata.get(tags.READONLY)
    )

    return FieldDescriptor(
        name=f.name,
        path=prefix + (f.name,),
        column=column,
        tag=tag,
        is_id=bool(tag is not None and tag.has("id") and column != tags.EXCLUDED),
        excluded=column == tags.EXCLUDED,
        readonly=readonly,
        table=table,
    )


__all__ = [
    "FieldDescriptor",
    "TypeDescriptor",
    "describe",
    "table_name",
    "record_type_of",
    "new_record",
    "clear_cache",
]
