"""Tests for settings, logging and database plumbing."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest
from pydantic import ValidationError
from rich.logging import RichHandler
from sqlalchemy.pool import StaticPool

from timetabler.core.config import EngineConfig, Settings
from timetabler.core.database import get_engine
from timetabler.core.logging import LOG_FILE_NAME, resolve_level, setup_logging


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TIMETABLER_MAX_CONSECUTIVE_PERIODS", raising=False)
        monkeypatch.delenv("TIMETABLER_ENVIRONMENT", raising=False)
        settings = Settings(_env_file=None)
        assert settings.environment == "development"
        assert settings.engine_config() == EngineConfig()

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TIMETABLER_MAX_CONSECUTIVE_PERIODS", "3")
        monkeypatch.setenv("TIMETABLER_ENVIRONMENT", " Production ")
        monkeypatch.setenv("TIMETABLER_LOG_LEVEL", "info")
        settings = Settings(_env_file=None)

        assert settings.environment == "production"
        assert settings.log_level == "INFO"
        assert settings.engine_config().max_consecutive_periods == 3

    def test_unknown_environment_rejected(self, monkeypatch):
        monkeypatch.setenv("TIMETABLER_ENVIRONMENT", "staging")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestEngineConfig:

    def test_limits(self):
        with pytest.raises(ValidationError):
            EngineConfig(max_consecutive_periods=0)
        with pytest.raises(ValidationError):
            EngineConfig(max_periods=3)


class TestGetEngine:

    def test_in_memory_sqlite_shares_one_connection(self):
        engine = get_engine("sqlite://")
        assert isinstance(engine.pool, StaticPool)

    def test_file_sqlite(self, tmp_path):
        engine = get_engine(f"sqlite:///{tmp_path / 'db.sqlite'}")
        assert engine.dialect.name == "sqlite"
        assert not isinstance(engine.pool, StaticPool)


class TestSetupLogging:
    """Tests for logging setup."""

    @pytest.fixture
    def bare_root(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])
        level = root.level
        yield root
        for handler in root.handlers:
            handler.close()
        root.setLevel(level)

    def test_resolve_level(self):
        assert resolve_level("production") == logging.INFO
        assert resolve_level("development") == logging.DEBUG
        assert resolve_level("development", "warning") == logging.WARNING
        assert resolve_level("development", "chatty") == logging.INFO

    def test_development_logs_to_console_only(self, bare_root, tmp_path):
        setup_logging(environment="development", logs_dir=tmp_path)
        assert [type(h) for h in bare_root.handlers] == [RichHandler]
        assert bare_root.level == logging.DEBUG
        assert not (tmp_path / LOG_FILE_NAME).exists()

    def test_production_adds_rotating_file(self, bare_root, tmp_path):
        setup_logging(environment=" Production ", logs_dir=tmp_path / "logs")
        logging.getLogger("timetabler.test").info("placed 3 lessons")
        for handler in bare_root.handlers:
            handler.flush()

        assert any(isinstance(h, RotatingFileHandler) for h in bare_root.handlers)
        assert "placed 3 lessons" in (tmp_path / "logs" / LOG_FILE_NAME).read_text()
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_second_call_adds_nothing(self, bare_root):
        setup_logging(environment="development")
        setup_logging(environment="production")
        assert len(bare_root.handlers) == 1
