"""Tests for configuration loading."""

import pytest

from expense_ledger.config import (
    AppSettings,
    DatabaseSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDatabaseSettings:
    """Tests for DatabaseSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_DB_URL", raising=False)
        settings = DatabaseSettings()
        assert settings.url == "sqlite:///./expense_ledger.db"
        assert settings.is_sqlite
        assert settings.create_schema

    def test_env_prefix(self, monkeypatch):
        """Variables are read with the LEDGER_DB_ prefix."""
        monkeypatch.setenv("LEDGER_DB_URL", "postgresql://ledger@localhost/ledger")
        monkeypatch.setenv("LEDGER_DB_POOL_SIZE", "12")
        settings = DatabaseSettings()
        assert not settings.is_sqlite
        assert settings.pool_size == 12

    def test_pool_size_bounds(self):
        with pytest.raises(ValueError):
            DatabaseSettings(pool_size=0)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self):
        settings = AppSettings(_env_file=None)
        assert settings.max_description_length == 255
        assert settings.amount_decimal_places == 2
        assert settings.scope_aggregation_to_owner is True
        assert settings.log_json is True

    def test_log_level_is_normalized(self):
        assert AppSettings(_env_file=None, log_level=" debug ").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValueError):
            AppSettings(_env_file=None, log_level="LOUD")

    def test_scope_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCOPE_AGGREGATION_TO_OWNER", "false")
        assert AppSettings(_env_file=None).scope_aggregation_to_owner is False


class TestSettingsContainer:
    """Tests for the cached settings root."""

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["database"] is True
        assert results["app"] is True

    def test_validate_reports_bad_values(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        results = validate_all_settings()
        assert results["app"] is False
        assert "app_error" in results
