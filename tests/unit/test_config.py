"""
Unit tests for settings and logging setup.

Tests cover:
- Environment variable overrides
- Text and JSON log formatting
"""

import json
import logging

import pytest

from sqlplay.config import Settings, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def _record(msg, **extra):
    record = logging.LogRecord("sqlplay.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.log_format == "text"
        assert settings.is_development

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SQLPLAY_ENVIRONMENT", "production")
        monkeypatch.setenv("SQLPLAY_RUN_TIMEOUT_SECONDS", "2.5")

        settings = Settings()

        assert not settings.is_development
        assert settings.run_timeout_seconds == 2.5


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_json_lines_are_valid_json(self, restore_root_logger):
        setup_logging(Settings(log_format="json", log_level="debug"))
        [handler] = restore_root_logger.handlers

        line = handler.format(_record('say "hi"\nback\\slash', session_id="s1"))

        payload = json.loads(line)
        assert payload["message"] == 'say "hi"\nback\\slash'
        assert payload["session_id"] == "s1"
        assert restore_root_logger.level == logging.DEBUG

    def test_text_format(self, restore_root_logger):
        setup_logging(Settings(log_format="text"))
        [handler] = restore_root_logger.handlers

        line = handler.format(_record("hello"))

        assert line.endswith("sqlplay.test - INFO - hello")
