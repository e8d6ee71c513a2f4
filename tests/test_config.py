# tests/test_config.py
"""Tests for configuration management."""

import logging

from prax.config import Settings, configure_logging, get_settings
from prax.query.dialect import DatabaseType, resolve_dialect


class TestSettings:
    """Settings test suite."""

    def test_default_values(self):
        """Test default configuration values."""
        settings = Settings()
        assert settings.default_dialect == "postgresql"
        assert settings.mssql_policy_schema == "Security"
        assert settings.pipeline_max_batch_size == 1000
        assert settings.bulk_insert_batch_size == 1000
        assert settings.search_score_alias == "search_score"
        assert settings.strict_validation is True

    def test_env_prefix(self, monkeypatch):
        """Test that PRAX_ environment variables are read."""
        monkeypatch.setenv("PRAX_DEFAULT_DIALECT", "mysql")
        monkeypatch.setenv("PRAX_BULK_INSERT_BATCH_SIZE", "250")
        settings = Settings()
        assert settings.default_dialect == "mysql"
        assert settings.bulk_insert_batch_size == 250

    def test_get_settings_is_cached(self):
        """Test that get_settings returns one instance."""
        assert get_settings() is get_settings()

    def test_default_dialect_drives_resolution(self, monkeypatch):
        """Test that builders fall back to the configured dialect."""
        monkeypatch.setenv("PRAX_DEFAULT_DIALECT", "sqlserver")
        get_settings.cache_clear()
        assert resolve_dialect(None) == DatabaseType.MSSQL

    def test_extra_reserved_words(self):
        """Test parsing the extra reserved words list."""
        settings = Settings(extra_reserved_words='["Tenant", "region"]')
        assert settings.get_extra_reserved_words() == ["tenant", "region"]

    def test_extra_reserved_words_invalid_json(self):
        """Test that malformed JSON yields an empty list."""
        settings = Settings(extra_reserved_words="not json")
        assert settings.get_extra_reserved_words() == []

    def test_extra_reserved_words_not_a_list(self):
        """Test that a JSON object is ignored."""
        settings = Settings(extra_reserved_words='{"a": 1}')
        assert settings.get_extra_reserved_words() == []


class TestLogging:
    """Logging configuration tests."""

    def test_configure_logging_sets_level(self, monkeypatch):
        """Test that configure_logging passes the level to basicConfig."""
        captured = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        configure_logging(Settings(log_level="debug"))
        assert captured["level"] == logging.DEBUG
        assert "%(name)s" in captured["format"]

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        """Test an unknown level name."""
        captured = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
        configure_logging(Settings(log_level="chatty"))
        assert captured["level"] == logging.INFO
