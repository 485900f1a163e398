"""Test store settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from agent_store.config import StoreSettings, get_settings


class TestStoreSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("AGENT_STORE_TABLE_PREFIX", raising=False)
        settings = StoreSettings(_env_file=None)
        assert settings.database_url.startswith("sqlite+aiosqlite")
        assert settings.is_sqlite
        assert settings.table_prefix == ""
        assert settings.log_level == "INFO"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("AGENT_STORE_TABLE_PREFIX", "mastra_")
        monkeypatch.setenv("AGENT_STORE_LOG_LEVEL", "debug")
        monkeypatch.setenv("AGENT_STORE_DATABASE_URL", "postgresql+asyncpg://u:p@db/agents")
        settings = StoreSettings(_env_file=None)
        assert settings.table_prefix == "mastra_"
        assert settings.log_level == "DEBUG"
        assert not settings.is_sqlite

    def test_invalid_prefix(self):
        with pytest.raises(ValidationError):
            StoreSettings(_env_file=None, table_prefix="drop table;")

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            StoreSettings(_env_file=None, log_level="LOUD")

    def test_negative_busy_timeout(self):
        with pytest.raises(ValidationError):
            StoreSettings(_env_file=None, sqlite_busy_timeout=-1)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
