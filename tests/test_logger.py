"""Tests for logger.py — setup_logging() and JsonFormatter.

Strategy: mock logging.basicConfig and inspect the handlers passed to it,
since pytest's log capture plugin interferes with real basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from git_publisher.logger import DEFAULT_LOG_FILE, JsonFormatter, setup_logging


@pytest.fixture
def basic_config():
    with patch("git_publisher.logger.logging.basicConfig") as mock_basic:
        yield mock_basic
    for call in mock_basic.call_args_list:
        for handler in call.kwargs.get("handlers", []):
            handler.close()


def _handlers(mock_basic):
    return mock_basic.call_args.kwargs["handlers"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_cli_mode_logs_to_stderr(self, basic_config):
        setup_logging(mode="cli")

        (handler,) = _handlers(basic_config)
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr

    def test_cli_mode_with_log_file_adds_file_handler(
        self, basic_config, tmp_path
    ):
        log_file = tmp_path / "cli.log"
        setup_logging(mode="cli", log_file=str(log_file))

        handlers = _handlers(basic_config)
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        assert handlers[1].baseFilename == str(log_file)

    def test_file_mode_uses_log_file_env(
        self, basic_config, tmp_path, monkeypatch
    ):
        log_file = tmp_path / "bg.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        setup_logging(mode="file")

        (handler,) = _handlers(basic_config)
        assert isinstance(handler, logging.FileHandler)
        assert handler.baseFilename == str(log_file)

    def test_default_log_file(self):
        assert DEFAULT_LOG_FILE == "/tmp/git-publisher.log"

    def test_default_levels(self, basic_config, monkeypatch, tmp_path):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.INFO

        setup_logging(mode="file", log_file=str(tmp_path / "x.log"))
        assert basic_config.call_args.kwargs["level"] == logging.WARNING

    def test_config_level_used_without_env(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(level="error")
        assert basic_config.call_args.kwargs["level"] == logging.ERROR

    def test_env_beats_config_level(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        setup_logging(level="DEBUG")
        assert basic_config.call_args.kwargs["level"] == logging.WARNING

    def test_debug_beats_everything(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(debug=True, level="ERROR")
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(
        self, basic_config, monkeypatch
    ):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        setup_logging()
        assert basic_config.call_args.kwargs["level"] == logging.INFO

    def test_json_format(self, basic_config):
        setup_logging(debug_format="json")
        (handler,) = _handlers(basic_config)
        assert isinstance(handler.formatter, JsonFormatter)

    def test_third_party_silenced(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging()
        for name in ("urllib3", "requests", "charset_normalizer"):
            assert logging.getLogger(name).level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, msg, args=(), exc_info=None):
        return logging.LogRecord(
            name="git_publisher.publish",
            level=logging.WARNING,
            pathname="x.py",
            lineno=1,
            msg=msg,
            args=args,
            exc_info=exc_info,
        )

    def test_fields(self):
        output = JsonFormatter().format(
            self._record("Published %s", ("a.md",))
        )
        data = json.loads(output)
        assert data["level"] == "WARNING"
        assert data["logger"] == "git_publisher.publish"
        assert data["msg"] == "Published a.md"
        assert "ts" in data
        assert "\n" not in output

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        data = json.loads(
            JsonFormatter().format(self._record("failed", exc_info=exc_info))
        )
        assert "RuntimeError: boom" in data["exc"]
