"""
In-Memory Storage Adapter

LRU-bounded, per-process key-value store with TTL.

STAGE-STORE.1: In-memory storage

Implementation Details:
- OrderedDict for O(1) access and LRU ordering
- asyncio.Lock around every mutation
- Values are stored orjson-encoded, so callers never share mutable state
  with the store and unserializable values fail at write time
- Expiry is checked lazily on access (monotonic clock)
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import AsyncIterator
from typing import Any

from readthrough.core.config.constants import DEFAULT_MEMORY_MAX_SIZE
from readthrough.core.logging.logger import get_logger
from readthrough.infrastructure.storage.codec import decode, encode

logger = get_logger(__name__)

# (encoded value, monotonic expiry or None)
_Slot = tuple[bytes, float | None]


class MemoryStorageAdapter:
    """
    In-memory LRU storage.

    This is a per-instance store, not shared across workers. For
    distributed caching, use RedisStorageAdapter.
    """

    def __init__(self, max_size: int = DEFAULT_MEMORY_MAX_SIZE):
        """
        Initialize LRU storage.

        Args:
            max_size: Maximum number of items to store
        """
        self._max_size = max_size
        self._data: OrderedDict[str, _Slot] = OrderedDict()
        self._lock = asyncio.Lock()

    @staticmethod
    def _expired(slot: _Slot, now: float) -> bool:
        expires_at = slot[1]
        return expires_at is not None and expires_at <= now

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            slot = self._data.get(key)
            if slot is None:
                return None
            if self._expired(slot, time.monotonic()):
                del self._data[key]
                return None
            # Mark as recently used
            self._data.move_to_end(key)
            payload = slot[0]
        return decode(payload)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Store a value. Evicts the least recently used item when at capacity.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Seconds until expiry (None or 0 = no expiry)

        Raises:
            SerializationError: If the value cannot be encoded
        """
        payload = encode(value)
        expires_at = time.monotonic() + ttl if ttl else None
        async with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            self._data[key] = (payload, expires_at)
            while len(self._data) > self._max_size:
                evicted, _ = self._data.popitem(last=False)
                logger.debug("LRU eviction", stage="STORE.1", key=evicted)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            slot = self._data.pop(key, None)
            return slot is not None and not self._expired(slot, time.monotonic())

    async def has(self, key: str) -> bool:
        async with self._lock:
            slot = self._data.get(key)
            if slot is None:
                return False
            if self._expired(slot, time.monotonic()):
                del self._data[key]
                return False
            return True

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        """Yield (key, value) pairs from a snapshot taken at call time."""
        async with self._lock:
            now = time.monotonic()
            snapshot = [(k, slot[0]) for k, slot in self._data.items() if not self._expired(slot, now)]
        for key, payload in snapshot:
            yield key, decode(payload)

    def get_size(self) -> int:
        """Current number of slots (expired slots included until touched)."""
        return len(self._data)

    def get_max_size(self) -> int:
        return self._max_size

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "store": "memory",
            "size": self.get_size(),
            "max_size": self._max_size,
        }
