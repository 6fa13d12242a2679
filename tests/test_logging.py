"""
Tests for the logging module.

Tests verify:
- The level defaults to SORM_LOG_LEVEL
- JSON output carries the library name and a timestamp
- Mapper query events come out through the configured renderer
"""

import json
from dataclasses import dataclass

import pytest
import structlog

from sorm.config import MapperConfig
from sorm.logging import configure_logging, get_logger
from sorm.mapper import Mapper


@dataclass
class Object:
    id: int = 0
    name: str = ""


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def json_lines(capsys: pytest.CaptureFixture) -> list[dict]:
    return [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_format(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger("test").info("record_saved", table="invoices")

        [event] = json_lines(capsys)
        assert event["event"] == "record_saved"
        assert event["table"] == "invoices"
        assert event["library"] == "sorm"
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger("test").debug("hidden")

        assert capsys.readouterr().out == ""

    def test_level_defaults_to_settings(self, monkeypatch, capsys):
        monkeypatch.setenv("SORM_LOG_LEVEL", "WARNING")
        configure_logging(json_format=True)
        logger = get_logger("test")

        logger.info("hidden")
        logger.warning("shown")

        assert [e["event"] for e in json_lines(capsys)] == ["shown"]

    def test_builtin_level_shows_debug(self, monkeypatch, capsys):
        monkeypatch.delenv("SORM_LOG_LEVEL", raising=False)
        configure_logging(json_format=True)
        get_logger("test").debug("visible")

        assert [e["event"] for e in json_lines(capsys)] == ["visible"]


class TestMapperEvents:
    def test_query_events_rendered(self, monkeypatch, capsys, conn):
        monkeypatch.setenv("SORM_LOG_LEVEL", "info")
        monkeypatch.setenv("SORM_LOG_QUERIES", "true")
        monkeypatch.setenv("SORM_PARAMETER_PREFIX", "?")
        configure_logging(json_format=True)

        assert Mapper(MapperConfig.from_settings()).count_all(conn, Object) == 0

        events = json_lines(capsys)
        assert [e["event"] for e in events] == ["query_started", "query_finished"]
        assert events[0]["query"] == "select count(*) from objects"
        assert events[0]["level"] == "info"
        assert all(e["library"] == "sorm" for e in events)
