#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
read-through caching layer. Every tunable of the cache handle, the storage
adapters, the metrics engine and logging lives here.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Explicit settings objects can be passed to a cache handle, so the core
  never depends on where its configuration came from
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the networked storage adapter.

    STAGE-STORE.0: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_NAMESPACE: str = Field(default="readthrough", description="Prefix for every key written to Redis")
    REDIS_SCAN_BATCH_SIZE: int = Field(default=500, description="COUNT hint for SCAN-based clear/iterate")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache handle configuration.

    STAGE-SVC.0: Cache instance configuration

    Awareness flags only seed the runtime configuration; the live values are
    owned by RuntimeConfigManager and may change without restart.
    """

    CACHE_NAME: str = Field(default="caching", description="Default cache instance name")
    CACHE_STORE: Literal["memory", "redis"] = Field(default="memory", description="Storage adapter kind")
    CACHE_DEFAULT_TTL: float = Field(default=0, ge=0, description="Default TTL in seconds (0 = no expiry)")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=10000, gt=0, description="In-memory adapter max entries")
    CACHE_THROW_ON_ERRORS: bool = Field(default=False, description="Rethrow storage errors instead of collecting them")
    CACHE_KEY_PREFIX: str = Field(default="", description="Prefix applied to every derived key")
    CACHE_TENANT_AWARE: bool = Field(default=True, description="Fold the tenant into derived keys")
    CACHE_USER_AWARE: bool = Field(default=True, description="Fold the user into derived keys")
    CACHE_LOCALE_AWARE: bool = Field(default=True, description="Fold the locale into derived keys")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MetricsSettings(BaseSettings):
    """
    Metrics engine configuration.

    STAGE-M.0: Metrics configuration

    Architectural Decision: bounded memory
    - Latency samples live in ring buffers (oldest evicted first)
    - The per-key table keeps only the most-accessed keys
    """

    METRICS_ENABLED: bool = Field(default=False, description="Initial aggregate metrics toggle")
    KEY_METRICS_ENABLED: bool = Field(default=False, description="Initial per-key metrics toggle")
    METRICS_MAX_LATENCY_SAMPLES: int = Field(default=2000, gt=0, description="Latency samples kept per outcome")
    METRICS_MAX_KEY_LATENCY_SAMPLES: int = Field(default=100, gt=0, description="Latency samples kept per key and outcome")
    METRICS_MAX_TRACKED_KEYS: int = Field(default=1000, gt=0, description="Keys kept in the per-key table")
    METRICS_PERSISTENCE_INTERVAL: float = Field(default=10.0, gt=0, description="Seconds between background flushes")
    METRICS_ROLLUP_PERIODS: list[Literal["hourly", "daily", "monthly"]] = Field(
        default=["hourly", "daily"],
        description="Historical buckets each flush merges into"
    )
    METRICS_PROMETHEUS_ENABLED: bool = Field(default=False, description="Mirror counters into prometheus")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="readthrough", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from readthrough.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_DEFAULT_TTL
        samples = settings.metrics.METRICS_MAX_LATENCY_SAMPLES
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_NAMESPACE: str = Field(default="readthrough", description="Prefix for every key written to Redis")
    REDIS_SCAN_BATCH_SIZE: int = Field(default=500, description="COUNT hint for SCAN-based clear/iterate")

    # Cache settings
    CACHE_NAME: str = Field(default="caching", description="Default cache instance name")
    CACHE_STORE: Literal["memory", "redis"] = Field(default="memory", description="Storage adapter kind")
    CACHE_DEFAULT_TTL: float = Field(default=0, ge=0, description="Default TTL in seconds (0 = no expiry)")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=10000, gt=0, description="In-memory adapter max entries")
    CACHE_THROW_ON_ERRORS: bool = Field(default=False, description="Rethrow storage errors instead of collecting them")
    CACHE_KEY_PREFIX: str = Field(default="", description="Prefix applied to every derived key")
    CACHE_TENANT_AWARE: bool = Field(default=True, description="Fold the tenant into derived keys")
    CACHE_USER_AWARE: bool = Field(default=True, description="Fold the user into derived keys")
    CACHE_LOCALE_AWARE: bool = Field(default=True, description="Fold the locale into derived keys")

    # Metrics settings
    METRICS_ENABLED: bool = Field(default=False, description="Initial aggregate metrics toggle")
    KEY_METRICS_ENABLED: bool = Field(default=False, description="Initial per-key metrics toggle")
    METRICS_MAX_LATENCY_SAMPLES: int = Field(default=2000, gt=0, description="Latency samples kept per outcome")
    METRICS_MAX_KEY_LATENCY_SAMPLES: int = Field(default=100, gt=0, description="Latency samples kept per key and outcome")
    METRICS_MAX_TRACKED_KEYS: int = Field(default=1000, gt=0, description="Keys kept in the per-key table")
    METRICS_PERSISTENCE_INTERVAL: float = Field(default=10.0, gt=0, description="Seconds between background flushes")
    METRICS_ROLLUP_PERIODS: list[Literal["hourly", "daily", "monthly"]] = Field(
        default=["hourly", "daily"],
        description="Historical buckets each flush merges into"
    )
    METRICS_PROMETHEUS_ENABLED: bool = Field(default=False, description="Mirror counters into prometheus")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="readthrough", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_NAMESPACE=self.REDIS_NAMESPACE,
            REDIS_SCAN_BATCH_SIZE=self.REDIS_SCAN_BATCH_SIZE,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_NAME=self.CACHE_NAME,
            CACHE_STORE=self.CACHE_STORE,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_MEMORY_MAX_SIZE=self.CACHE_MEMORY_MAX_SIZE,
            CACHE_THROW_ON_ERRORS=self.CACHE_THROW_ON_ERRORS,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_TENANT_AWARE=self.CACHE_TENANT_AWARE,
            CACHE_USER_AWARE=self.CACHE_USER_AWARE,
            CACHE_LOCALE_AWARE=self.CACHE_LOCALE_AWARE,
        )

    @property
    def metrics(self) -> 'MetricsSettings':
        """Get metrics settings."""
        return MetricsSettings(
            METRICS_ENABLED=self.METRICS_ENABLED,
            KEY_METRICS_ENABLED=self.KEY_METRICS_ENABLED,
            METRICS_MAX_LATENCY_SAMPLES=self.METRICS_MAX_LATENCY_SAMPLES,
            METRICS_MAX_KEY_LATENCY_SAMPLES=self.METRICS_MAX_KEY_LATENCY_SAMPLES,
            METRICS_MAX_TRACKED_KEYS=self.METRICS_MAX_TRACKED_KEYS,
            METRICS_PERSISTENCE_INTERVAL=self.METRICS_PERSISTENCE_INTERVAL,
            METRICS_ROLLUP_PERIODS=self.METRICS_ROLLUP_PERIODS,
            METRICS_PROMETHEUS_ENABLED=self.METRICS_PROMETHEUS_ENABLED,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
