"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest

from readthrough.caching.key_generator import KeyGenerator
from readthrough.caching.runtime_config import RuntimeConfig, RuntimeConfigManager
from readthrough.caching.service import CachingService
from readthrough.caching.tag_index import TagIndex
from readthrough.caching.tag_resolver import TagResolver
from readthrough.core.config.settings import Settings
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter
from tests.test_fixtures.storage_factory import FlakyStorageAdapter

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """
    Explicit settings for tests.

    Built from keyword arguments so a developer's .env never leaks in.
    """
    return Settings(
        CACHE_NAME="test-cache",
        CACHE_STORE="memory",
        CACHE_DEFAULT_TTL=0,
        METRICS_ENABLED=False,
        KEY_METRICS_ENABLED=False,
        METRICS_PERSISTENCE_INTERVAL=3600,
        ENVIRONMENT="test",
    )


@pytest.fixture
def metrics_settings(settings):
    """Settings with both metric toggles on."""
    return settings.model_copy(update={"METRICS_ENABLED": True, "KEY_METRICS_ENABLED": True})


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def memory_store():
    return MemoryStorageAdapter(max_size=100)


@pytest.fixture
def flaky_store():
    """Memory adapter whose operations fail on demand (see ``fail_on``)."""
    return FlakyStorageAdapter()


@pytest.fixture
def runtime_config():
    return RuntimeConfigManager("test-cache", RuntimeConfig(metrics_enabled=True, key_metrics_enabled=True))


@pytest.fixture
def key_generator(runtime_config):
    return KeyGenerator(runtime_config)


@pytest.fixture
def tag_resolver(key_generator):
    return TagResolver(key_generator)


@pytest.fixture
def tag_index(memory_store):
    return TagIndex(memory_store)


@pytest.fixture
def metrics_engine(runtime_config):
    return MetricsEngine("test-cache", runtime_config)


# ============================================================================
# Cache Handle Fixtures
# ============================================================================


@pytest.fixture
async def cache(settings, memory_store):
    """Initialized cache handle over the memory adapter, metrics off."""
    service = CachingService("test-cache", storage=memory_store, settings=settings)
    await service.initialize()
    yield service
    await service.shutdown()


@pytest.fixture
async def metered_cache(metrics_settings, memory_store):
    """Initialized cache handle with aggregate and key metrics on."""
    service = CachingService("metered-cache", storage=memory_store, settings=metrics_settings)
    await service.initialize()
    yield service
    await service.metrics.stop()
    await service.shutdown()


@pytest.fixture
async def flaky_cache(metrics_settings, flaky_store):
    """Cache handle over the flaky adapter, metrics on."""
    service = CachingService("flaky-cache", storage=flaky_store, settings=metrics_settings)
    await service.initialize()
    yield service
    flaky_store.fail_on.clear()
    await service.shutdown()
