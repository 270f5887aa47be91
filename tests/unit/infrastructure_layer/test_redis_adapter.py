"""
Unit Tests for the Redis Storage Adapter

Uses a mocked redis.asyncio client; no server is needed.
"""

from unittest.mock import AsyncMock

import orjson
import pytest
from redis.exceptions import RedisError

from readthrough.core.exceptions import CacheKeyError
from readthrough.infrastructure.storage.redis_adapter import RedisStorageAdapter
from tests.test_fixtures import StorageTestFactory


@pytest.fixture
def redis_client():
    return StorageTestFactory.mock_redis_client()


@pytest.fixture
def adapter(settings, redis_client):
    return RedisStorageAdapter(settings, client=redis_client)


@pytest.mark.unit
class TestRedisStorage:
    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, adapter, redis_client):
        await adapter.set("k", {"a": 1})

        assert redis_client.data[b"readthrough:k"] == orjson.dumps({"a": 1})
        assert await adapter.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_ttl_uses_milliseconds(self, adapter, redis_client):
        await adapter.set("k", 1, ttl=1.5)

        redis_client.set.assert_awaited_once_with("readthrough:k", b"1", px=1500)

    @pytest.mark.asyncio
    async def test_has_and_delete(self, adapter):
        await adapter.set("k", 1)

        assert await adapter.has("k") is True
        assert await adapter.delete("k") is True
        assert await adapter.has("k") is False
        assert await adapter.delete("k") is False

    @pytest.mark.asyncio
    async def test_clear_only_touches_namespace(self, adapter, redis_client):
        redis_client.data[b"other:k"] = b"1"
        await adapter.set("a", 1)
        await adapter.set("b", 2)

        await adapter.clear()

        assert list(redis_client.data) == [b"other:k"]

    @pytest.mark.asyncio
    async def test_iterate_strips_namespace(self, adapter):
        await adapter.set("a", 1)

        pairs = [pair async for pair in adapter.iterate()]

        assert pairs == [("a", 1)]

    @pytest.mark.asyncio
    async def test_redis_errors_are_wrapped(self, adapter, redis_client):
        redis_client.get = AsyncMock(side_effect=RedisError("down"))

        with pytest.raises(CacheKeyError) as exc_info:
            await adapter.get("k")

        assert exc_info.value.details["key"] == "k"

    @pytest.mark.asyncio
    async def test_health_check(self, adapter):
        health = await adapter.health_check()

        assert health["status"] == "healthy"
        assert health["namespace"] == "readthrough"

    @pytest.mark.asyncio
    async def test_health_check_without_client(self, settings):
        health = await RedisStorageAdapter(settings).health_check()
        assert health["status"] == "unhealthy"
