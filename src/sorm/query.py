"""
Expression builder: composable WHERE / ORDER BY / LIMIT fragments.

Predicates and ordering terms are SQLAlchemy Core clause elements; a
:class:`Renderer` compiles them for the configured store and the
:class:`FragmentBuilder` stitches the pieces into one fragment with
contiguously numbered placeholders, which is then handed to the
:class:`~sorm.mapper.Mapper` select paths.

Architecture:
    ::

        where=and_(c.age > 30, c.name.like("A%"))
        order=[c.name.desc()]                     FragmentBuilder
        offset_limit=OffsetLimit(10, 20)   ──►    "where"  expr
                                                  "order by" expr, expr
                                                  dialect.limit_offset(...)
                                                        │
                                                        ▼
            ("where age > $1 AND name LIKE $2 order by name DESC limit $3 offset $4",
             [30, "A%", 10, 20])
                                                        │
                                                        ▼
                                     Mapper.find_where(conn, Person, sql, *args)

Examples:
    >>> from sqlalchemy import and_
    >>> c = columns(Person)
    >>> people = find_where(conn, Person, and_(c.age > 30, c.name.like("A%")),
    ...                     order=[c.name.desc()], offset_limit=OffsetLimit(limit=10))
    >>> count_where(conn, Person, c.age > 30)
    12

Tags:
    query-builder, expressions, sqlalchemy, pagination, sorm
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import column

from sorm.catalog import describe
from sorm.config import MapperConfig
from sorm.errors import ConfigError
from sorm.mapper import Mapper
from sorm.protocols import Querier

# "%s" is a positional bind, "%%" an escaped literal percent.
_FORMAT_PLACEHOLDER = re.compile(r"%(%|s)")


@runtime_checkable
class Renderer(Protocol):
    """Renders one clause element.

    ``parameter`` returns the next placeholder each time it is called; the
    renderer must call it once per bound value, left to right, and return
    the values in the same order.
    """

    def render(self, element: Any, parameter: Callable[[], str]) -> tuple[str, list[Any]]: ...


class SQLAlchemyRenderer:
    """Compile SQLAlchemy clause elements with a positional ``format`` dialect."""

    def __init__(self, dialect: Any):
        if getattr(dialect, "paramstyle", None) != "format":
            raise ConfigError(
                "SQLAlchemyRenderer needs a dialect compiled with paramstyle='format'",
                operation="render",
            )
        self.dialect = dialect

    def render(self, element: Any, parameter: Callable[[], str]) -> tuple[str, list[Any]]:
        if isinstance(element, str):
            return element, []

        compiled = element.compile(
            dialect=self.dialect, compile_kwargs={"render_postcompile": True}
        )
        params = compiled.params
        args = [params[name] for name in compiled.positiontup or ()]

        def substitute(match: re.Match) -> str:
            return "%" if match.group(1) == "%" else parameter()

        return _FORMAT_PLACEHOLDER.sub(substitute, compiled.string), args


@dataclass(frozen=True)
class OffsetLimit:
    limit: int | None = None
    offset: int | None = None


class FragmentBuilder:
    """Accumulates SQL text and bound values with running placeholder numbers."""

    def __init__(self, renderer: Renderer, parameter: Callable[[int], str]):
        self._renderer = renderer
        self._parameter = parameter
        self._parts: list[str] = []
        self._args: list[Any] = []
        self._count = 0

    def _next(self) -> str:
        self._count += 1
        return self._parameter(self._count)

    def text(self, sql: str) -> FragmentBuilder:
        self._parts.append(sql)
        return self

    def param(self, value: Any) -> str:
        """Bind ``value`` and return its placeholder (not appended to the text)."""
        placeholder = self._next()
        self._args.append(value)
        return placeholder

    def expr(self, element: Any) -> FragmentBuilder:
        sql, args = self._renderer.render(element, self._next)
        self._parts.append(sql)
        self._args.extend(args)
        return self

    def exprs(self, keyword: str, elements: Iterable[Any], sep: str = ", ") -> FragmentBuilder:
        rendered = []
        for element in elements:
            sql, args = self._renderer.render(element, self._next)
            rendered.append(sql)
            self._args.extend(args)
        if rendered:
            self._parts.append(f"{keyword} {sep.join(rendered)}")
        return self

    def to_sql(self) -> tuple[str, list[Any]]:
        return " ".join(p for p in self._parts if p), list(self._args)


def renderer_for(config: MapperConfig) -> Renderer:
    return SQLAlchemyRenderer(config.dialect.sqlalchemy_dialect())


def render_fragment(
    config: MapperConfig,
    where: Any = None,
    order: Iterable[Any] = (),
    offset_limit: OffsetLimit | None = None,
    *,
    renderer: Renderer | None = None,
) -> tuple[str, list[Any]]:
    """``where <predicate> order by <terms> <limit/offset>``, each only if present."""
    builder = FragmentBuilder(renderer or renderer_for(config), config.parameter)

    if where is not None:
        builder.text("where").expr(where)
    builder.exprs("order by", order)
    if offset_limit is not None:
        builder.text(
            config.dialect.limit_offset(offset_limit.limit, offset_limit.offset, builder.param)
        )

    return builder.to_sql()


class ColumnSet:
    """Attribute access to ``sqlalchemy.column`` objects of a record type.

    Attribute names are the declared field names; the columns carry the
    resolved column names.
    """

    def __init__(self, record_type: Any):
        descriptor = describe(record_type)
        self._table = descriptor.table
        self._columns = {f.name: column(f.column) for f in descriptor.mapped_fields}

    def __getattr__(self, name: str) -> Any:
        try:
            return self._columns[name]
        except KeyError:
            raise AttributeError(f"{self._table} has no mapped field {name!r}") from None

    def __getitem__(self, name: str) -> Any:
        return self._columns[name]

    def __iter__(self):
        return iter(self._columns.values())


def columns(record_type: Any) -> ColumnSet:
    return ColumnSet(record_type)


def _bound(mapper: Mapper | None) -> Mapper:
    # Render and execute with the same config snapshot.
    return Mapper((mapper or Mapper()).config)


def count_where(
    conn: Querier,
    record_type: Any,
    where: Any = None,
    *,
    mapper: Mapper | None = None,
    renderer: Renderer | None = None,
) -> int:
    mapper = _bound(mapper)
    sql, args = render_fragment(mapper.config, where, renderer=renderer)
    return mapper.count_where(conn, record_type, sql, *args)


def find_where(
    conn: Querier,
    record_type: Any,
    where: Any = None,
    order: Iterable[Any] = (),
    offset_limit: OffsetLimit | None = None,
    *,
    mapper: Mapper | None = None,
    renderer: Renderer | None = None,
) -> list:
    mapper = _bound(mapper)
    sql, args = render_fragment(mapper.config, where, order, offset_limit, renderer=renderer)
    return mapper.find_where(conn, record_type, sql, *args)


def find_first_where(
    conn: Querier,
    record_type: Any,
    where: Any = None,
    order: Iterable[Any] = (),
    *,
    mapper: Mapper | None = None,
    renderer: Renderer | None = None,
) -> Any:
    mapper = _bound(mapper)
    sql, args = render_fragment(mapper.config, where, order, renderer=renderer)
    return mapper.find_first_where(conn, record_type, sql, *args)


__all__ = [
    "Renderer",
    "SQLAlchemyRenderer",
    "OffsetLimit",
    "FragmentBuilder",
    "ColumnSet",
    "columns",
    "render_fragment",
    "renderer_for",
    "count_where",
    "find_where",
    "find_first_where",
]
