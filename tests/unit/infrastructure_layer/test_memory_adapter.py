"""
Unit Tests for the In-Memory Storage Adapter

Tests LRU eviction, TTL expiry and value isolation.
"""

import asyncio

import pytest

from readthrough.core.exceptions import SerializationError
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter


@pytest.mark.unit
class TestMemoryStorage:
    @pytest.mark.asyncio
    async def test_basic_operations(self, memory_store):
        await memory_store.set("k", {"a": [1, 2]})

        assert await memory_store.get("k") == {"a": [1, 2]}
        assert await memory_store.has("k") is True
        assert await memory_store.delete("k") is True
        assert await memory_store.get("k") is None
        assert await memory_store.delete("k") is False

    @pytest.mark.asyncio
    async def test_values_are_copies(self, memory_store):
        """Test that mutating a value after set or get never changes the store."""
        value = {"items": [1]}
        await memory_store.set("k", value)
        value["items"].append(2)
        fetched = await memory_store.get("k")
        fetched["items"].append(3)

        assert await memory_store.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        store = MemoryStorageAdapter(max_size=2)
        await store.set("a", 1)
        await store.set("b", 2)
        await store.get("a")
        await store.set("c", 3)

        assert await store.get("b") is None
        assert await store.get("a") == 1
        assert store.get_size() == 2

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, memory_store):
        await memory_store.set("short", 1, ttl=0.01)
        await memory_store.set("forever", 2, ttl=0)

        await asyncio.sleep(0.05)

        assert await memory_store.get("short") is None
        assert await memory_store.has("short") is False
        assert await memory_store.get("forever") == 2

    @pytest.mark.asyncio
    async def test_delete_of_expired_entry_reports_false(self, memory_store):
        await memory_store.set("short", 1, ttl=0.01)
        await asyncio.sleep(0.05)

        assert await memory_store.delete("short") is False

    @pytest.mark.asyncio
    async def test_iterate_and_clear(self, memory_store):
        await memory_store.set("a", 1)
        await memory_store.set("b", 2)

        pairs = [pair async for pair in memory_store.iterate()]
        await memory_store.clear()

        assert pairs == [("a", 1), ("b", 2)]
        assert memory_store.get_size() == 0

    @pytest.mark.asyncio
    async def test_unserializable_value_fails_at_write(self, memory_store):
        with pytest.raises(SerializationError):
            await memory_store.set("k", object())
        assert await memory_store.get("k") is None

    @pytest.mark.asyncio
    async def test_health_check(self, memory_store):
        health = await memory_store.health_check()
        assert health["status"] == "healthy"
        assert health["max_size"] == 100
