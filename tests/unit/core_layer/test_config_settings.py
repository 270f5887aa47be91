"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError

from readthrough.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsInitialization:
    """Test Settings class initialization and validation."""

    def test_settings_has_required_sections(self):
        """Test that Settings exposes every configuration section."""
        settings = Settings()

        assert hasattr(settings, "redis")
        assert hasattr(settings, "cache")
        assert hasattr(settings, "metrics")
        assert hasattr(settings, "logging")
        assert hasattr(settings, "app")

    def test_cache_defaults(self):
        """Test cache defaults when nothing is configured."""
        settings = Settings(_env_file=None)

        assert settings.cache.CACHE_STORE == "memory"
        assert settings.cache.CACHE_DEFAULT_TTL == 0
        assert settings.cache.CACHE_THROW_ON_ERRORS is False
        assert settings.cache.CACHE_TENANT_AWARE is True

    def test_metrics_defaults(self):
        """Test that metrics start disabled with bounded buffers."""
        settings = Settings(_env_file=None)

        assert settings.metrics.METRICS_ENABLED is False
        assert settings.metrics.KEY_METRICS_ENABLED is False
        assert settings.metrics.METRICS_MAX_LATENCY_SAMPLES == 2000
        assert settings.metrics.METRICS_ROLLUP_PERIODS == ["hourly", "daily"]

    def test_explicit_values_flow_into_sections(self):
        """Test that constructor values reach the nested sections."""
        settings = Settings(CACHE_NAME="orders", REDIS_NAMESPACE="shop", METRICS_MAX_TRACKED_KEYS=5)

        assert settings.cache.CACHE_NAME == "orders"
        assert settings.redis.REDIS_NAMESPACE == "shop"
        assert settings.metrics.METRICS_MAX_TRACKED_KEYS == 5


@pytest.mark.unit
class TestSettingsValidation:
    """Test fail-fast validation."""

    def test_log_level_is_normalized(self):
        settings = Settings(LOG_LEVEL="debug")
        assert settings.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="VERBOSE")

    def test_unknown_store_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_STORE="memcached")

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_DEFAULT_TTL=-1)

    def test_unknown_rollup_period_rejected(self):
        with pytest.raises(ValidationError):
            Settings(METRICS_ROLLUP_PERIODS=["weekly"])

    def test_environment_variables_are_read(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("CACHE_KEY_PREFIX", "svc:")
        monkeypatch.setenv("METRICS_ENABLED", "true")

        settings = Settings()

        assert settings.cache.CACHE_KEY_PREFIX == "svc:"
        assert settings.metrics.METRICS_ENABLED is True


@pytest.mark.unit
class TestSettingsSingleton:
    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        first = get_settings()
        second = reload_settings()

        assert second is not first
        assert get_settings() is second
