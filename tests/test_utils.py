"""Tests for settings loading, log sanitizing and the error hierarchy."""

import json
import logging

import pytest

from tradejournal.utils.config import Settings, get_settings, reload_settings
from tradejournal.utils.exceptions import (
    AuthorizationError, ErrorCategory, JournalError, NotFoundError, StorageError,
)
from tradejournal.utils.logger import get_logger, sanitize_log_data, setup_logging


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        s = Settings(_env_file=None)
        assert s.recent_trades_limit == 10
        assert s.default_page_size == 50
        assert s.max_page_size == 500
        assert s.jwt_expires_hours == 168

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DB_PATH", "/tmp/other.db")
        monkeypatch.setenv("RECENT_TRADES_LIMIT", "3")
        try:
            s = reload_settings()
            assert s is get_settings()
            assert s.db_path == "/tmp/other.db"
            assert s.recent_trades_limit == 3
        finally:
            monkeypatch.undo()
            reload_settings()
        assert get_settings().recent_trades_limit == 10

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:

    def test_structlog_renders_json_through_stdlib(self, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        setup_logging(Settings(_env_file=None, log_file=str(tmp_path / "logs" / "journal.log")))
        get_logger("tradejournal.tests").info("trade_created", trade_id=7)
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "trade_created"
        assert payload["trade_id"] == 7
        assert payload["level"] == "info"


class TestSanitize:

    def test_redacts_nested_secrets(self):
        data = {"email": "a@b.c", "password": "hunter22",
                "auth": {"token": "abc", "scope": "read"}}
        clean = sanitize_log_data(data)
        assert clean["email"] == "a@b.c"
        assert clean["password"] == "***REDACTED***"
        assert clean["auth"] == {"token": "***REDACTED***", "scope": "read"}
        assert data["password"] == "hunter22"


class TestErrors:

    @pytest.mark.parametrize("error,status", [
        (AuthorizationError(), 403),
        (NotFoundError("Trade not found"), 404),
        (StorageError("down"), 503),
    ])
    def test_status_codes(self, error, status):
        assert isinstance(error, JournalError)
        assert error.status_code == status

    def test_str_includes_category(self):
        err = NotFoundError("Trade not found")
        assert err.category is ErrorCategory.NOT_FOUND
        assert str(err) == "[not_found] Trade not found | (HTTP 404)"
