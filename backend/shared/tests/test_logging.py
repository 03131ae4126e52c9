import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from shared.logging import (
    _serialize_enums,
    bind_connection_context,
    bind_room_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestSetupLogging:
    def test_configures_stdout_handler(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1

        handler = root.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_no_file_without_log_dir(self):
        assert setup_logging() is None

    def test_configures_file_handler_in_log_dir(self, tmp_path):
        log_dir = tmp_path / "server"
        setup_logging(log_dir=log_dir)
        root = logging.getLogger()

        assert len(root.handlers) == 2

        stream_handler = root.handlers[0]
        file_handler = root.handlers[1]
        assert isinstance(stream_handler, logging.StreamHandler)
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename).parent == log_dir

    def test_log_file_has_datetime_in_name(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_time
            log_path = setup_logging(log_dir=tmp_path)

        assert log_path is not None
        assert log_path.name == "2025-03-15_10-30-45.log"

    def test_skips_file_under_pytest(self, tmp_path):
        with patch("shared.logging._is_test", return_value=True):
            assert setup_logging(log_dir=tmp_path / "server") is None
        assert not (tmp_path / "server").exists()

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger().level == logging.DEBUG

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.DEBUG

    def test_invalid_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            setup_logging()

    def test_quiets_uvicorn_access_log(self):
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_json_mode_produces_valid_json(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path / "server", level=logging.INFO)

        bind_connection_context("conn-1")
        bind_room_context("ABC123", "user-1")
        test_logger = structlog.get_logger("test.json")
        test_logger.info("json test event", extra_field="value")
        structlog.contextvars.clear_contextvars()

        assert log_path is not None
        lines = log_path.read_text().strip().splitlines()
        assert len(lines) >= 1
        parsed = json.loads(lines[0])
        assert parsed["event"] == "json test event"
        assert parsed["connection_id"] == "conn-1"
        assert parsed["room_id"] == "ABC123"
        assert parsed["user_id"] == "user-1"
        assert parsed["extra_field"] == "value"

    def test_console_mode_produces_readable_output(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "console")
        log_path = setup_logging(log_dir=tmp_path / "server", level=logging.INFO)

        test_logger = structlog.get_logger("test.console")
        test_logger.info("console test event")

        assert log_path is not None
        content = log_path.read_text()
        assert "console test event" in content

    def test_invalid_log_format_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "invalid_value")
        with pytest.raises(ValueError, match="Invalid LOG_FORMAT"):
            setup_logging()


class TestContextBinding:
    def test_bind_connection_context(self):
        bind_connection_context("conn-9")
        assert structlog.contextvars.get_contextvars() == {"connection_id": "conn-9"}

    def test_bind_room_context_skips_missing_user(self):
        bind_room_context("ROOM42")
        assert structlog.contextvars.get_contextvars() == {"room_id": "ROOM42"}

    def test_bind_room_context_with_user(self):
        bind_connection_context("conn-9")
        bind_room_context("ROOM42", "user-3")
        assert structlog.contextvars.get_contextvars() == {
            "connection_id": "conn-9",
            "room_id": "ROOM42",
            "user_id": "user-3",
        }


class TestSerializeEnums:
    class _Color(Enum):
        RED = "red"
        BLUE = "blue"

    def test_replaces_enum_with_value(self):
        event_dict = {"action": self._Color.RED, "msg": "hello"}
        result = _serialize_enums(None, "", event_dict)
        assert result["action"] == "red"
        assert result["msg"] == "hello"

    def test_leaves_non_enum_values_unchanged(self):
        event_dict = {"count": 42, "name": "test"}
        result = _serialize_enums(None, "", event_dict)
        assert result == {"count": 42, "name": "test"}
