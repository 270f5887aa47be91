"""
Storage Test Factory

Storage adapters with controllable failures for error-path tests.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

from readthrough.core.exceptions import CacheKeyError
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter


class FlakyStorageAdapter(MemoryStorageAdapter):
    """
    Memory adapter that raises for the operations named in ``fail_on``.

    Usage:
        store = FlakyStorageAdapter()
        store.fail_on.add("get")
    """

    def __init__(self, max_size: int = 100, error: Exception | None = None):
        super().__init__(max_size=max_size)
        self.fail_on: set[str] = set()
        self.error = error or CacheKeyError("backend unavailable")

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.error

    async def get(self, key: str) -> Any | None:
        self._maybe_fail("get")
        return await super().get(key)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._maybe_fail("set")
        await super().set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        self._maybe_fail("delete")
        return await super().delete(key)

    async def has(self, key: str) -> bool:
        self._maybe_fail("has")
        return await super().has(key)

    async def clear(self) -> None:
        self._maybe_fail("clear")
        await super().clear()


class StorageTestFactory:
    """Factory for storage test doubles."""

    @staticmethod
    def dict_store(initial_data: dict[str, Any] | None = None) -> MagicMock:
        """
        Minimal adapter over a plain dict, without iterate().

        Useful to check the paths that only need the base contract.
        """
        store = MagicMock(spec=["get", "set", "delete", "has", "clear"])
        store.data = dict(initial_data or {})

        async def mock_get(key):
            return store.data.get(key)

        async def mock_set(key, value, ttl=None):
            store.data[key] = value

        async def mock_delete(key):
            return store.data.pop(key, None) is not None

        async def mock_has(key):
            return key in store.data

        async def mock_clear():
            store.data.clear()

        store.get = AsyncMock(side_effect=mock_get)
        store.set = AsyncMock(side_effect=mock_set)
        store.delete = AsyncMock(side_effect=mock_delete)
        store.has = AsyncMock(side_effect=mock_has)
        store.clear = AsyncMock(side_effect=mock_clear)
        return store

    @staticmethod
    def mock_redis_client(data: dict[bytes, bytes] | None = None) -> AsyncMock:
        """redis.asyncio client double backed by a dict of namespaced byte keys."""
        client = AsyncMock()
        client.data = dict(data or {})

        async def mock_get(key):
            return client.data.get(key.encode() if isinstance(key, str) else key)

        async def mock_set(key, value, px=None):
            client.data[key.encode()] = value
            return True

        async def mock_delete(*keys):
            removed = 0
            for key in keys:
                raw = key.encode() if isinstance(key, str) else key
                if client.data.pop(raw, None) is not None:
                    removed += 1
            return removed

        async def mock_exists(key):
            return int(key.encode() in client.data)

        async def mock_scan_iter(match=None, count=None):
            prefix = match.rstrip("*").encode()
            for key in list(client.data):
                if key.startswith(prefix):
                    yield key

        client.get = AsyncMock(side_effect=mock_get)
        client.set = AsyncMock(side_effect=mock_set)
        client.delete = AsyncMock(side_effect=mock_delete)
        client.exists = AsyncMock(side_effect=mock_exists)
        client.scan_iter = mock_scan_iter
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        return client
