"""Tests for settings and logging configuration."""

import logging
from decimal import Decimal

import structlog

from shared.config import get_settings, reset_settings
from shared.logging import add_context, clear_context, configure_logging, get_log_level


class TestSettings:
    def test_defaults(self):
        settings = get_settings()
        assert settings.default_currency == "EGP"
        assert settings.reservation_ttl_minutes == 15
        assert settings.default_commission_rate == Decimal("10.00")
        assert settings.platform_fee_rate == Decimal("0.00")

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("SOUQ_RESERVATION_TTL_MINUTES", "30")
        monkeypatch.setenv("SOUQ_PLATFORM_FEE_RATE", "2.5")
        reset_settings()

        settings = get_settings()
        assert settings.reservation_ttl_minutes == 30
        assert settings.platform_fee_rate == Decimal("2.5")

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestLogLevel:
    def test_test_environment_logs_warnings(self):
        assert get_log_level() == "WARNING"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("SOUQ_LOG_LEVEL", "ERROR")
        reset_settings()
        assert get_log_level() == "ERROR"

    def test_development_logs_debug(self, monkeypatch):
        monkeypatch.setenv("SOUQ_ENVIRONMENT", "development")
        reset_settings()
        assert get_log_level() == "DEBUG"


class TestConfigureLogging:
    def test_root_logger_level_follows_environment(self):
        configure_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_file_handlers_when_log_dir_set(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOUQ_LOG_DIR", str(tmp_path))
        reset_settings()
        configure_logging()
        try:
            assert (tmp_path / "souq.log").exists()
            assert (tmp_path / "souq_error.log").exists()
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            monkeypatch.delenv("SOUQ_LOG_DIR")
            reset_settings()
            configure_logging()

    def test_context_is_bound_and_cleared(self):
        add_context(order_id="ord-1")
        assert structlog.contextvars.get_contextvars()["order_id"] == "ord-1"
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
