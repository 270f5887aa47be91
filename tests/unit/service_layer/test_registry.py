"""
Unit Tests for Named Cache Instances
"""

import pytest

from readthrough.caching.service import close_cache, get_caching_service, init_cache
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter


@pytest.mark.unit
class TestRegistry:
    @pytest.mark.asyncio
    async def test_same_name_same_instance(self, settings):
        first = get_caching_service("registry-a", settings=settings)
        second = get_caching_service("registry-a")

        assert first is second
        await close_cache("registry-a")

    @pytest.mark.asyncio
    async def test_instances_are_isolated(self, settings):
        a = await init_cache("registry-b", settings=settings, storage=MemoryStorageAdapter())
        b = await init_cache("registry-c", settings=settings, storage=MemoryStorageAdapter())

        await a.set("k", 1)

        assert await b.get("k") is None
        await close_cache("registry-b")
        await close_cache("registry-c")

    @pytest.mark.asyncio
    async def test_close_unregisters(self, settings):
        service = await init_cache("registry-d", settings=settings)

        await close_cache("registry-d")

        assert service.is_initialized is False
        assert get_caching_service("registry-d", settings=settings) is not service
        await close_cache("registry-d")

    @pytest.mark.asyncio
    async def test_default_name_from_settings(self, settings):
        service = get_caching_service(settings=settings)

        assert service.name == "test-cache"
        await close_cache("test-cache")
