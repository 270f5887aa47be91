"""
Cache-Related Exceptions

All exceptions raised by storage adapters and the cache handle.
"""

from readthrough.core.exceptions.base import CachingBaseError


class CacheError(CachingBaseError):
    """Base exception for cache-related errors."""
    pass


class StorageError(CacheError):
    """
    Raised when a storage adapter operation fails.

    Storage errors are recoverable: the read-through orchestrator collects
    them instead of failing the call unless throw-on-errors is set.
    """
    pass


class CacheConnectionError(StorageError):
    """
    Raised when unable to connect to the storage backend.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(StorageError):
    """
    Raised when a key operation fails on the storage backend.

    Common causes:
    - Operation timeout
    - Memory limit exceeded on the backend
    - Wrong value type stored under the key
    """
    pass


class SerializationError(StorageError):
    """
    Raised when a value cannot be encoded for, or decoded from, storage.

    Common causes:
    - Producer returned an object orjson cannot serialize
    - Backend holds bytes written by another application
    """
    pass
