"""
Storage Adapter Protocols

This module defines the contract the caching core consumes from a pluggable
key-value backend (in-memory, file-backed or networked).

Architectural Decision: Protocol-based abstraction
- Adapters need no common base class (structural subtyping)
- Optional capabilities (iteration, lifecycle) are separate protocols so the
  core can check for them with isinstance() at runtime
- Easy mocking for tests

Error contract:
    Adapter failures surface as exceptions. The read-through orchestrator
    catches them per call; the direct facade re-raises them.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageAdapter(Protocol):
    """
    Minimal key-value contract every adapter provides.

    Values are opaque to the adapter; the core stores entry envelopes
    (dicts holding the value, tags and creation timestamp).
    """

    async def get(self, key: str) -> Any | None:
        """
        Get the stored value.

        Returns:
            The value, or None when the key is absent or expired
        """
        ...

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Store a value, overwriting any previous one.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds (None or 0 = no expiry)
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        ...

    async def has(self, key: str) -> bool:
        """Check whether a non-expired key exists."""
        ...

    async def clear(self) -> None:
        """Remove every key owned by this adapter."""
        ...


@runtime_checkable
class IterableStorageAdapter(StorageAdapter, Protocol):
    """
    Adapter that can enumerate its entries.

    Iteration is finite and restartable only by calling iterate() again;
    callers must not rely on its order. Used for tag index rebuilds and
    administrative listing.
    """

    def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        """Yield (key, value) pairs of non-expired entries."""
        ...


@runtime_checkable
class ManagedStorageAdapter(StorageAdapter, Protocol):
    """Adapter with an explicit connection lifecycle."""

    async def connect(self) -> None:
        """
        Establish connection to the backend.

        Raises:
            CacheConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close connection to the backend."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Return a health report with at least a ``status`` field."""
        ...
