"""Default SQL identifiers derived from Python type and field names."""

from __future__ import annotations

import re

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def camel_to_snake(name: str) -> str:
    """Convert ``CamelCase`` (or already ``snake_case``) to ``snake_case``.

    >>> camel_to_snake("MyType")
    'my_type'
    >>> camel_to_snake("HTTPServer")
    'http_server'
    >>> camel_to_snake("ID")
    'id'
    """
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.replace("-", "_").lower()


def default_column_name(field_name: str) -> str:
    return camel_to_snake(field_name)


def default_table_name(type_name: str) -> str:
    """Pluralized snake-case table name: ``Person`` -> ``persons``."""
    return camel_to_snake(type_name) + "s"


__all__ = ["camel_to_snake", "default_column_name", "default_table_name"]
