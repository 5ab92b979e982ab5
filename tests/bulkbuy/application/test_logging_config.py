"""Tests for the structlog and stdlib logging setup."""

import logging
import logging.handlers

from bulkbuy.utils import logging as bulkbuy_logging


class TestLogLevel:
    def test_test_environment_logs_warnings(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "test")
        assert bulkbuy_logging.get_log_level() == "WARNING"

    def test_production_logs_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENV", "production")
        assert bulkbuy_logging.get_log_level() == "INFO"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert bulkbuy_logging.get_log_level() == "ERROR"


class TestConfigureLogging:
    def test_rotating_files_written_to_log_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv(bulkbuy_logging.LOG_DIR_ENV, str(tmp_path / "logs"))

        bulkbuy_logging.configure_logging()

        files = {
            handler.baseFilename.rsplit("/", 1)[-1]
            for handler in logging.getLogger().handlers
            if isinstance(handler, logging.handlers.RotatingFileHandler)
        }
        assert files == {"bulkbuy.log", "bulkbuy_error.log"}
        assert (tmp_path / "logs").is_dir()
