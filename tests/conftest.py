"""
Shared pytest fixtures for sorm tests.

This module provides:
- Process-default config isolation (every test starts from MapperConfig())
- In-memory sqlite3 connections
- RecordingConnection: a sqlite3 wrapper that records every statement
- FakeCursor: a DB-API cursor over canned rows for decoder tests
"""

import sqlite3
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

# Ensure sorm package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sorm.config import MapperConfig, reset_config, set_config
from sorm.mapper import Mapper
from sorm.settings import get_settings


class RecordingConnection:
    """Forward to a sqlite3 connection, remembering (sql, params) pairs."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.statements: list[tuple[str, tuple]] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_commit = False

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        self.statements.append((sql, tuple(params)))
        return self.conn.execute(sql, params)

    def commit(self) -> None:
        if self.fail_commit:
            raise sqlite3.OperationalError("commit refused")
        self.commits += 1
        self.conn.commit()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.conn.rollback()

    @property
    def queries(self) -> list[str]:
        return [sql for sql, _ in self.statements]


class FakeCursor:
    """DB-API cursor over canned rows."""

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]):
        self.description = [(name, None, None, None, None, None, None) for name in columns]
        self._rows = list(rows)
        self.closed = False

    def fetchone(self) -> Any:
        if not self._rows:
            return None
        return tuple(self._rows.pop(0))

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config():
    """Every test starts from the built-in defaults ($ prefix, sqlite dialect)."""
    get_settings.cache_clear()
    set_config(MapperConfig())
    yield
    reset_config()
    get_settings.cache_clear()


@pytest.fixture
def db() -> sqlite3.Connection:
    """In-memory SQLite database with the tables used across tests."""
    c = sqlite3.connect(":memory:")
    c.executescript(
        """
        CREATE TABLE objects (id INTEGER PRIMARY KEY, name TEXT);
        CREATE TABLE memberships (
            group_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            role TEXT,
            joined TEXT,
            PRIMARY KEY (group_id, user_id)
        );
        CREATE TABLE people (
            id INTEGER PRIMARY KEY,
            full_name TEXT,
            email TEXT,
            created_at TEXT,
            street TEXT,
            city TEXT
        );
        """
    )
    c.commit()
    yield c
    c.close()


@pytest.fixture
def conn(db: sqlite3.Connection) -> RecordingConnection:
    return RecordingConnection(db)


@pytest.fixture
def sqlite_config() -> MapperConfig:
    """sqlite3 understands numbered ?N placeholders."""
    return MapperConfig(parameter_prefix="?")


@pytest.fixture
def mapper(sqlite_config: MapperConfig) -> Mapper:
    return Mapper(sqlite_config)
