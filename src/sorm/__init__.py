"""sorm -- reflection-driven mapping between dataclass records and SQL.

Manifesto:
    Records are plain dataclasses; table and column names are derived from
    them (or from field annotations), never generated from a schema. The
    mapper builds parameterized statements, runs them on any DB-API style
    connection, and decodes rows back into records.

Architecture::

    naming.py      Default identifiers (camel_to_snake, pluralized tables)
    tags.py        Field annotations: column(), exclude(), embedded(), table()
    catalog.py     describe() -> TypeDescriptor, cached per type
    decoder.py     scan_rows(): cursor rows -> records
    mapper.py      Mapper: find/count/create/save/replace/delete
    hooks.py       before_*/after_* lifecycle hooks
    querylog.py    Query logger protocols + structlog implementation
    query.py       SQLAlchemy-expression WHERE/ORDER/LIMIT builder
    dialect.py     Store-specific fragments (limit, replace, identity fetch)
    config.py      MapperConfig + process default
    settings.py    SORM_* environment settings
    errors.py      Error hierarchy

Examples:
    >>> from dataclasses import dataclass
    >>> import sqlite3, sorm
    >>> @dataclass
    ... class Person:
    ...     id: int = 0
    ...     name: str = ""
    >>> sorm.set_parameter_prefix("?")
    >>> conn = sqlite3.connect(":memory:")
    >>> conn.execute("create table persons (id integer primary key, name text)")
    >>> p = Person(name="Ada")
    >>> sorm.create_record(conn, p)
    >>> p.id
    1
"""

from sorm.catalog import (
    FieldDescriptor,
    TypeDescriptor,
    clear_cache,
    describe,
    table_name,
)
from sorm.config import (
    MapperConfig,
    configure,
    get_config,
    reset_config,
    set_config,
    set_dialect,
    set_parameter_prefix,
    set_query_logger,
    set_query_logger_func,
)
from sorm.decoder import scan_rows
from sorm.dialect import Dialect, get_dialect, register_dialect
from sorm.errors import (
    ConfigError,
    DescribeError,
    ExecutionError,
    HookError,
    InputShapeError,
    MissingIdentityError,
    NoRowsError,
    SormError,
    UnresolvedColumnError,
)
from sorm.mapper import (
    Mapper,
    count_all,
    count_where,
    create_record,
    delete_record,
    find_all,
    find_first,
    find_first_where,
    find_where,
    replace_record,
    save_record,
    save_record_with_transaction,
    transaction,
)
from sorm.protocols import OverrideScanner, Querier, Scanner
from sorm.querylog import (
    QueryLogger,
    QueryLoggerAfter,
    QueryLoggerFunc,
    StructlogQueryLogger,
)
from sorm.tags import column, embedded, exclude, table

__version__ = "0.1.0"

__all__ = [
    # Catalog
    "FieldDescriptor",
    "TypeDescriptor",
    "describe",
    "table_name",
    "clear_cache",
    # Annotations
    "column",
    "exclude",
    "embedded",
    "table",
    # Decoding
    "scan_rows",
    "OverrideScanner",
    "Scanner",
    "Querier",
    # Statements
    "Mapper",
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
    "transaction",
    # Configuration
    "MapperConfig",
    "get_config",
    "set_config",
    "configure",
    "reset_config",
    "set_parameter_prefix",
    "set_dialect",
    "set_query_logger",
    "set_query_logger_func",
    "Dialect",
    "get_dialect",
    "register_dialect",
    # Query logging
    "QueryLogger",
    "QueryLoggerAfter",
    "QueryLoggerFunc",
    "StructlogQueryLogger",
    # Errors
    "SormError",
    "InputShapeError",
    "DescribeError",
    "UnresolvedColumnError",
    "MissingIdentityError",
    "NoRowsError",
    "ExecutionError",
    "HookError",
    "ConfigError",
]
