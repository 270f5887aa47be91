"""
Tag Index

Reverse mapping tag -> set of cache keys, used for bulk invalidation.

The index lives in memory and is written through to the storage adapter under
``__tags__:{tag}`` so that instances sharing a networked store see each
other's tags. Updates are set unions on write and set differences on delete,
so concurrent writes to overlapping tags commute.

The index may contain stale keys (entries that expired or were overwritten
without the tag); invalidation re-checks each candidate's stored tags before
deleting it.
"""

from collections.abc import Iterable

from readthrough.caching.models import CacheEntry
from readthrough.core.config.constants import RESERVED_KEY_PREFIXES, TAG_INDEX_KEY_PREFIX
from readthrough.core.interfaces.storage import IterableStorageAdapter, StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


def is_reserved_key(key: str) -> bool:
    """True for keys written by the caching core itself."""
    return key.startswith(RESERVED_KEY_PREFIXES)


class TagIndex:
    """Tag to key index for one storage adapter."""

    def __init__(self, store: StorageAdapter):
        self._store = store
        self._index: dict[str, set[str]] = {}

    @staticmethod
    def storage_key(tag: str) -> str:
        return f"{TAG_INDEX_KEY_PREFIX}{tag}"

    async def add(self, key: str, tags: Iterable[str]) -> None:
        """
        Register ``key`` under every tag.

        STAGE-TAG.1: Tag registration

        Raises:
            StorageError: If the write-through fails (the in-memory index is updated regardless)
        """
        for tag in tags:
            keys = await self.keys_for(tag)
            if key in keys:
                continue
            keys.add(key)
            self._index[tag] = keys
            await self._store.set(self.storage_key(tag), sorted(keys))
            log_stage(logger, "TAG.1", "Key registered under tag", level="debug", tag=tag, cache_key=key)

    async def keys_for(self, tag: str) -> set[str]:
        """Keys registered under ``tag`` (memory merged with the stored copy)."""
        keys = set(self._index.get(tag, ()))
        stored = await self._store.get(self.storage_key(tag))
        if isinstance(stored, list):
            keys.update(str(k) for k in stored)
        return keys

    async def discard_key(self, key: str, tags: Iterable[str]) -> None:
        """Remove ``key`` from the given tags; empty tags are dropped."""
        for tag in tags:
            keys = await self.keys_for(tag)
            if key not in keys:
                continue
            keys.discard(key)
            await self._save(tag, keys)

    async def stored_tags(self, key: str) -> list[str]:
        """Tags of the entry currently stored under ``key``."""
        stored = await self._store.get(key)
        if not CacheEntry.is_envelope(stored):
            return []
        return [str(tag) for tag in stored.get("tags") or []]

    async def delete_entry(self, key: str) -> bool:
        """
        Delete ``key`` and unregister it from the tags it carried.

        Returns:
            True if the entry existed
        """
        tags = await self.stored_tags(key)
        deleted = await self._store.delete(key)
        if tags:
            await self.discard_key(key, tags)
        return deleted

    async def invalidate(self, tag: str) -> list[str]:
        """
        Delete every entry still carrying ``tag`` and forget the tag.

        STAGE-TAG.2: Tag invalidation

        Returns:
            The keys that were deleted
        """
        deleted = []
        for key in sorted(await self.keys_for(tag)):
            stored = await self._store.get(key)
            if stored is None:
                continue
            if CacheEntry.is_envelope(stored) and tag not in (stored.get("tags") or []):
                continue
            if await self._store.delete(key):
                deleted.append(key)
        await self.remove_tag(tag)
        log_stage(logger, "TAG.2", "Tag invalidated", tag=tag, deleted=len(deleted))
        return deleted

    async def remove_tag(self, tag: str) -> None:
        self._index.pop(tag, None)
        await self._store.delete(self.storage_key(tag))

    def clear(self) -> None:
        """Forget the in-memory index (the adapter's clear removes the stored copy)."""
        self._index.clear()

    async def rebuild(self) -> int:
        """
        Rebuild the index from the stored envelopes.

        STAGE-TAG.3: Tag index rebuild

        Only possible when the adapter can iterate; otherwise the stored
        copy is used lazily by ``keys_for``.

        Returns:
            Number of tags indexed
        """
        if not isinstance(self._store, IterableStorageAdapter):
            return 0
        index: dict[str, set[str]] = {}
        async for key, stored in self._store.iterate():
            if is_reserved_key(key) or not CacheEntry.is_envelope(stored):
                continue
            for tag in stored.get("tags") or []:
                index.setdefault(tag, set()).add(key)
        self._index = index
        for tag, keys in index.items():
            await self._store.set(self.storage_key(tag), sorted(keys))
        log_stage(logger, "TAG.3", "Tag index rebuilt", tags=len(index))
        return len(index)

    async def _save(self, tag: str, keys: set[str]) -> None:
        if keys:
            self._index[tag] = keys
            await self._store.set(self.storage_key(tag), sorted(keys))
        else:
            await self.remove_tag(tag)
