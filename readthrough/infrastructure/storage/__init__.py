"""
Storage Infrastructure Module

Storage adapters implementing ``readthrough.core.interfaces.storage``.

Components:
-----------
- **codec.py**: orjson encoding shared by the adapters
- **memory_adapter.py**: LRU-bounded in-memory adapter with TTL
- **redis_adapter.py**: redis.asyncio adapter with pooling and namespacing
- **factory.py**: adapter selection from settings
"""

from readthrough.infrastructure.storage.factory import create_storage_adapter
from readthrough.infrastructure.storage.memory_adapter import MemoryStorageAdapter
from readthrough.infrastructure.storage.redis_adapter import RedisStorageAdapter

__all__ = [
    "MemoryStorageAdapter",
    "RedisStorageAdapter",
    "create_storage_adapter",
]
