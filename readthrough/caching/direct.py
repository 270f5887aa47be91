"""
Direct Key-Value Facade

Unconditional pass-through to the storage adapter, wrapped in entry
envelopes, instrumented with native counters (no hit/miss semantics, no
latency samples) and exposing a before/after hook slot per operation.

Error policy:
- storage failures record a native error and propagate
- ``has()`` returns False on storage failure unless throw-on-errors is set
- hook exceptions propagate and abort the operation
"""

from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from readthrough.caching.hooks import ClearEvent, DeleteEvent, DirectHooks, GetEvent, SetEvent
from readthrough.caching.models import CacheEntry, TagSpec
from readthrough.caching.tag_index import TagIndex, is_reserved_key
from readthrough.caching.tag_resolver import TagResolver
from readthrough.core.config.constants import OperationType
from readthrough.core.context import get_call_context
from readthrough.core.exceptions import StorageError
from readthrough.core.interfaces.storage import IterableStorageAdapter, StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage
from readthrough.infrastructure.monitoring.key_metrics import AccessMetadata
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine

logger = get_logger(__name__)


def _access(operation: str) -> AccessMetadata:
    ambient = get_call_context()
    return AccessMetadata(
        operation_type=OperationType.BASIC,
        data_type="Operation",
        operation=operation,
        tenant=ambient.tenant,
        user=ambient.user,
        locale=ambient.locale,
    )


class DirectFacade:
    """
    Direct set/get/delete/has/clear over one storage adapter.

    Usage:
        await direct.set("k", 1, ttl=60, tags=["orders"])
        await direct.get("k")  # -> 1
        await direct.delete_by_tag("orders")  # -> 1
    """

    def __init__(
        self,
        store: StorageAdapter,
        tag_index: TagIndex,
        tag_resolver: TagResolver,
        metrics: MetricsEngine,
        hooks: DirectHooks | None = None,
        default_ttl: float | None = None,
        throw_on_errors: bool = False,
    ):
        self._store = store
        self._tag_index = tag_index
        self._tag_resolver = tag_resolver
        self._metrics = metrics
        self.hooks = hooks or DirectHooks()
        self._default_ttl = default_ttl or None
        self._throw_on_errors = throw_on_errors

    def _failed(self, operation: str, key: str | None, error: Exception) -> None:
        self._metrics.record_native_error(key, _access(operation) if key else None)
        log_stage(
            logger,
            f"DIRECT.{operation.upper()}",
            "Direct operation failed",
            level="warning",
            cache_key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[TagSpec | Mapping[str, Any] | str] | None = None,
    ) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds to keep the entry (None = cache default)
            tags: Tag specs, resolved against ``value``
        """
        resolved = self._tag_resolver.resolve_tags(tags, payload=value) if tags else []
        event = await self.hooks.before_set.fire(SetEvent(key=key, value=value, ttl=ttl, tags=resolved))
        ttl = event.ttl if event.ttl is not None else self._default_ttl
        entry = CacheEntry(key=event.key, value=event.value, tags=list(event.tags), ttl=ttl)
        try:
            previous = await self._tag_index.stored_tags(entry.key)
            await self._store.set(entry.key, entry.to_envelope(), ttl=ttl)
            if entry.tags:
                await self._tag_index.add(entry.key, entry.tags)
            dropped = [tag for tag in previous if tag not in entry.tags]
            if dropped:
                await self._tag_index.discard_key(entry.key, dropped)
        except Exception as e:
            self._failed("set", entry.key, e)
            raise
        self._metrics.record_native_set(entry.key, _access("set"))
        log_stage(logger, "DIRECT.SET", "Entry stored", level="debug", cache_key=entry.key, tags=entry.tags)
        await self.hooks.after_set.fire(event)

    async def get(self, key: str) -> Any | None:
        """Value stored under ``key``, or None."""
        event = await self.hooks.before_get.fire(GetEvent(key=key))
        try:
            stored = await self._store.get(event.key)
        except Exception as e:
            self._failed("get", event.key, e)
            raise
        self._metrics.record_native_get(event.key, hit=stored is not None, metadata=_access("get"))
        event.value = CacheEntry.from_stored(event.key, stored).value if stored is not None else None
        await self.hooks.after_get.fire(event)
        return event.value

    async def has(self, key: str) -> bool:
        try:
            return await self._store.has(key)
        except Exception as e:
            self._failed("has", key, e)
            if self._throw_on_errors:
                raise
            return False

    async def delete(self, key: str) -> bool:
        """Delete ``key``; True if it existed."""
        event = await self.hooks.before_delete.fire(DeleteEvent(key=key))
        try:
            event.deleted = await self._tag_index.delete_entry(event.key)
        except Exception as e:
            self._failed("delete", event.key, e)
            raise
        self._metrics.record_native_delete(event.key, _access("delete"))
        log_stage(logger, "DIRECT.DELETE", "Entry deleted", level="debug", cache_key=event.key, deleted=event.deleted)
        await self.hooks.after_delete.fire(event)
        return event.deleted

    async def clear(self) -> None:
        """Remove every entry of the adapter (runtime configuration included when it shares the store)."""
        event = await self.hooks.before_clear.fire(ClearEvent())
        try:
            await self._store.clear()
        except Exception as e:
            self._failed("clear", None, e)
            raise
        self._tag_index.clear()
        event.cleared = True
        self._metrics.record_native_clear()
        log_stage(logger, "DIRECT.CLEAR", "Cache cleared")
        await self.hooks.after_clear.fire(event)

    async def delete_by_tag(self, tag: str) -> int:
        """
        Delete every entry carrying ``tag``.

        Returns:
            Number of deleted entries
        """
        try:
            deleted = await self._tag_index.invalidate(tag)
        except Exception as e:
            self._failed("delete_by_tag", None, e)
            raise
        self._metrics.record_native_delete_by_tag(tag)
        return len(deleted)

    # -------------------------------------------------------------------------
    # Introspection (no statistics)
    # -------------------------------------------------------------------------

    async def entry(self, key: str) -> CacheEntry | None:
        stored = await self._store.get(key)
        return CacheEntry.from_stored(key, stored) if stored is not None else None

    async def get_raw(self, key: str) -> Any | None:
        """The stored envelope as-is."""
        return await self._store.get(key)

    async def metadata(self, key: str) -> dict[str, Any] | None:
        """The entry without its value."""
        entry = await self.entry(key)
        return entry.metadata() if entry else None

    async def tags(self, key: str) -> list[str]:
        entry = await self.entry(key)
        return entry.tags if entry else []

    async def iterate(self) -> AsyncIterator[CacheEntry]:
        """
        Yield every entry; keys reserved by the caching core are hidden.

        Raises:
            StorageError: If the adapter cannot enumerate its entries
        """
        if not isinstance(self._store, IterableStorageAdapter):
            raise StorageError(
                "Storage adapter does not support iteration",
                details={"adapter": type(self._store).__name__},
            )
        async for key, stored in self._store.iterate():
            if is_reserved_key(key):
                continue
            yield CacheEntry.from_stored(key, stored)
