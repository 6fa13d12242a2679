"""Tests for MapperConfig, the process default, and SORM_* settings."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from conftest import FakeCursor
from pydantic import ValidationError

from sorm import config as config_module
from sorm.config import (
    MapperConfig,
    configure,
    get_config,
    reset_config,
    set_config,
    set_dialect,
    set_parameter_prefix,
    set_query_logger,
)
from sorm.dialect import MySQLDialect, PostgreSQLDialect, SQLiteDialect
from sorm.errors import ConfigError
from sorm.mapper import Mapper, find_first_where, find_where
from sorm.querylog import StructlogQueryLogger
from sorm.settings import SormSettings, get_settings


@dataclass
class Object:
    id: int = 0
    name: str = ""


class StubConnection:
    """Records statements and answers every query with an empty result."""

    def __init__(self) -> None:
        self.statements: list[tuple[str, tuple]] = []

    def execute(self, sql: str, params=()) -> FakeCursor:
        self.statements.append((sql, tuple(params)))
        return FakeCursor(["id", "name"], [(1, "a")])


class TestMapperConfig:
    def test_defaults(self) -> None:
        cfg = MapperConfig()
        assert cfg.parameter(1) == "$1"
        assert isinstance(cfg.dialect, SQLiteDialect)
        assert cfg.query_logger is None

    def test_parameter_prefix(self) -> None:
        assert MapperConfig(parameter_prefix=":").parameter(12) == ":12"

    def test_empty_prefix_falls_back(self) -> None:
        assert MapperConfig(parameter_prefix="").parameter(2) == "$2"

    def test_is_immutable(self) -> None:
        cfg = MapperConfig()
        with pytest.raises(AttributeError):
            cfg.parameter_prefix = "?"  # type: ignore[misc]
        assert cfg.replace(parameter_prefix="?").parameter(1) == "?1"
        assert cfg.parameter(1) == "$1"


class TestProcessDefault:
    def test_statements_use_prefix_at_call_time(self) -> None:
        conn = StubConnection()

        find_where(conn, Object, "where id = $1", 1)
        set_parameter_prefix("?")
        find_first_where(conn, Object, "where id = ?1", 1)

        assert [sql for sql, _ in conn.statements] == [
            "select * from objects where id = $1",
            "select * from objects where id = ?1 limit 1",
        ]

    def test_default_mapper_numbering(self) -> None:
        conn = StubConnection()
        Mapper().save_record(conn, Object(id=1, name="b"))
        assert conn.statements == [
            ("select * from objects where id = $1 limit 1", (1,)),
            ("update objects set name = $2 where id = $1", (1, "b")),
        ]

    def test_explicit_config_ignores_default(self) -> None:
        mapper = Mapper(MapperConfig(parameter_prefix=":"))
        set_parameter_prefix("?")
        assert mapper.config.parameter(1) == ":1"

    def test_set_dialect_by_name_or_instance(self) -> None:
        set_dialect("postgresql")
        assert isinstance(get_config().dialect, PostgreSQLDialect)
        set_dialect(MySQLDialect())
        assert isinstance(get_config().dialect, MySQLDialect)

    def test_set_dialect_unknown(self) -> None:
        with pytest.raises(ConfigError):
            set_dialect("nosuchdb")

    def test_setters_keep_other_fields(self) -> None:
        logger = StructlogQueryLogger()
        set_query_logger(logger)
        set_parameter_prefix("?")
        cfg = get_config()
        assert cfg.query_logger is logger
        assert cfg.parameter(1) == "?1"

    def test_configure_returns_new_default(self) -> None:
        cfg = configure(parameter_prefix="@")
        assert get_config() is cfg
        assert cfg.parameter(3) == "@3"

    def test_set_config(self) -> None:
        cfg = MapperConfig(parameter_prefix="?")
        set_config(cfg)
        assert get_config() is cfg


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("PARAMETER_PREFIX", "DIALECT", "LOG_QUERIES", "LOG_LEVEL", "SLOW_QUERY_MS"):
            monkeypatch.delenv(f"SORM_{key}", raising=False)
        s = SormSettings(_env_file=None)
        assert s.parameter_prefix == "$"
        assert s.dialect == "sqlite"
        assert s.log_queries is False
        assert s.slow_query_ms is None

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SORM_PARAMETER_PREFIX", "?")
        monkeypatch.setenv("SORM_DIALECT", "PostgreSQL")
        monkeypatch.setenv("SORM_LOG_QUERIES", "true")
        monkeypatch.setenv("SORM_SLOW_QUERY_MS", "250")
        s = SormSettings(_env_file=None)
        assert s.parameter_prefix == "?"
        assert s.dialect == "postgresql"
        assert s.log_queries is True
        assert s.slow_query_ms == 250

    def test_empty_prefix_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SormSettings(_env_file=None, parameter_prefix="")

    def test_negative_slow_threshold_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SormSettings(_env_file=None, slow_query_ms=-1)

    def test_from_settings(self) -> None:
        s = SormSettings(
            _env_file=None,
            parameter_prefix="?",
            dialect="mysql",
            log_queries=True,
            log_level="INFO",
            slow_query_ms=100,
        )
        cfg = MapperConfig.from_settings(s)
        assert cfg.parameter(1) == "?1"
        assert isinstance(cfg.dialect, MySQLDialect)
        assert isinstance(cfg.query_logger, StructlogQueryLogger)
        assert cfg.query_logger.level == "info"
        assert cfg.query_logger.slow_query_seconds == pytest.approx(0.1)

    def test_lazy_default_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SORM_PARAMETER_PREFIX", ":")
        monkeypatch.delenv("SORM_LOG_QUERIES", raising=False)
        get_settings.cache_clear()
        reset_config()
        assert config_module._default is None

        cfg = get_config()

        assert cfg.parameter(1) == ":1"
        assert cfg.query_logger is None
        assert get_config() is cfg
