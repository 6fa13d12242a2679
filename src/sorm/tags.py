"""Field metadata annotations.

Records are plain dataclasses; the mapping metadata lives in each field's
``metadata`` mapping, under these keys:

``sql``
    ``"<column-name>,<param>,<param>..."``. Recognized params are ``id``
    (identity field), ``readonly`` (never part of an UPDATE SET list) and
    ``table:<name>`` (table-name override). A column name of ``-`` excludes
    the field from every statement. An empty column name keeps the default
    name: ``",id"``.
``table``
    Overrides the table name of the owning record type.
``readonly``
    Legacy standalone marker. Any non-empty value means readonly.
``embed``
    The dataclass type of an embedded record. Its fields are mapped as if
    they were declared on the parent.

The helpers below build ``dataclasses.field`` values carrying that metadata::

    @dataclass
    class Person:
        id: int = 0
        name: str = column("full_name")
        secret: str = exclude(default="")
        created: str = column(readonly=True, default="")
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

SQL = "sql"
TABLE = "table"
READONLY = "readonly"
EMBED = "embed"

EXCLUDED = "-"


@dataclass(frozen=True)
class Tag:
    """A parsed ``sql`` annotation: the column name plus its parameters."""

    value: str
    params: tuple[tuple[str, str], ...] = ()

    def param(self, name: str) -> str | None:
        """Return the parameter value, ``""`` for bare flags, ``None`` if absent."""
        for key, value in self.params:
            if key == name:
                return value
        return None

    def has(self, name: str) -> bool:
        return self.param(name) is not None


def parse_tag(text: str) -> Tag:
    """Parse ``"name,id,table:people"`` into a :class:`Tag`.

    >>> parse_tag("full_name,readonly").has("readonly")
    True
    >>> parse_tag(",table:people").param("table")
    'people'
    """
    value, *rest = text.split(",")
    params = []
    for item in rest:
        item = item.strip()
        if not item:
            continue
        key, _, param_value = item.partition(":")
        params.append((key.strip(), param_value.strip()))
    return Tag(value=value.strip(), params=tuple(params))


def _with_metadata(field_kwargs: dict[str, Any], entries: dict[str, Any]) -> Any:
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata.update(entries)
    if "default" not in field_kwargs and "default_factory" not in field_kwargs:
        field_kwargs["default"] = None
    return dataclasses.field(metadata=metadata, **field_kwargs)


def column(
    name: str | None = None,
    *,
    id: bool = False,
    readonly: bool = False,
    table: str | None = None,
    **field_kwargs: Any,
) -> Any:
    """Dataclass field carrying an ``sql`` annotation.

    Fields without an explicit ``default``/``default_factory`` default to
    ``None``.
    """
    params = []
    if id:
        params.append("id")
    if readonly:
        params.append("readonly")
    if table:
        params.append(f"table:{table}")
    text = ",".join([name or "", *params])
    return _with_metadata(field_kwargs, {SQL: text})


def exclude(**field_kwargs: Any) -> Any:
    """Dataclass field that is never read or written."""
    return _with_metadata(field_kwargs, {SQL: EXCLUDED})


def table(name: str, **field_kwargs: Any) -> Any:
    """Dataclass field carrying the standalone table-name marker."""
    return _with_metadata(field_kwargs, {TABLE: name})


def embedded(record_type: type, **field_kwargs: Any) -> Any:
    """Dataclass field holding an embedded record of ``record_type``."""
    field_kwargs.setdefault("default_factory", record_type)
    return _with_metadata(field_kwargs, {EMBED: record_type})


__all__ = [
    "Tag",
    "parse_tag",
    "column",
    "exclude",
    "table",
    "embedded",
    "SQL",
    "TABLE",
    "READONLY",
    "EMBED",
    "EXCLUDED",
]
