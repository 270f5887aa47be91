"""
Cache Admin Service
===================

Operational surface of one cache instance, returning the pydantic models of
``application/models/admin.py``. Transport-agnostic: a host exposes these
methods over whatever channel it serves operators on.

Every mutating call is logged as an audit event.
"""

from readthrough.application.models.admin import (
    CacheEntryListResponse,
    CacheEntryResponse,
    ClearResponse,
    CurrentKeyMetricsResponse,
    CurrentMetricsResponse,
    DeleteByTagResponse,
    DeleteEntryResponse,
    HistoricalMetricsQuery,
    HistoricalMetricsResponse,
    RuntimeConfigResponse,
    SetEntryRequest,
)
from readthrough.caching.models import CacheEntry
from readthrough.caching.service import CachingService
from readthrough.core.logging.logger import get_logger

logger = get_logger(__name__)


def _entry_response(entry: CacheEntry) -> CacheEntryResponse:
    return CacheEntryResponse(
        key=entry.key,
        value=entry.value,
        timestamp=entry.created_at,
        ttl=entry.ttl,
        tags=entry.tags,
    )


class CacheAdminService:
    """
    Administrative operations on one cache instance.

    Reads go through the introspection calls of the cache handle, so listing
    and fetching never move hit/miss statistics.
    """

    def __init__(self, cache: CachingService):
        self._cache = cache

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def list_entries(self, limit: int | None = None) -> CacheEntryListResponse:
        """
        Enumerate entries; internal bookkeeping keys are hidden.

        Raises:
            StorageError: If the adapter cannot enumerate its entries
        """
        entries: list[CacheEntryResponse] = []
        truncated = False
        async for entry in self._cache.iterate():
            if limit is not None and len(entries) >= limit:
                truncated = True
                break
            entries.append(_entry_response(entry))
        return CacheEntryListResponse(cache=self._cache.name, count=len(entries), truncated=truncated, entries=entries)

    async def get_entry(self, key: str) -> CacheEntryResponse | None:
        entry = await self._cache.entry(key)
        return _entry_response(entry) if entry else None

    async def set_entry(self, request: SetEntryRequest, user_id: str | None = None) -> CacheEntryResponse:
        await self._cache.set(request.key, request.value, ttl=request.ttl, tags=request.tags)
        logger.info("admin_entry_set", cache=self._cache.name, key=request.key, tags=request.tags, user_id=user_id)
        entry = await self._cache.entry(request.key)
        return _entry_response(entry) if entry else CacheEntryResponse(key=request.key, value=request.value)

    async def delete_entry(self, key: str, user_id: str | None = None) -> DeleteEntryResponse:
        deleted = await self._cache.delete(key)
        logger.info("admin_entry_deleted", cache=self._cache.name, key=key, deleted=deleted, user_id=user_id)
        return DeleteEntryResponse(key=key, deleted=deleted)

    async def delete_by_tag(self, tag: str, user_id: str | None = None) -> DeleteByTagResponse:
        deleted = await self._cache.delete_by_tag(tag)
        logger.info("admin_tag_invalidated", cache=self._cache.name, tag=tag, deleted=deleted, user_id=user_id)
        return DeleteByTagResponse(tag=tag, deleted=deleted)

    async def clear(self, user_id: str | None = None) -> ClearResponse:
        await self._cache.clear()
        logger.warning("admin_cache_cleared", cache=self._cache.name, user_id=user_id)
        return ClearResponse(cache=self._cache.name)

    # -------------------------------------------------------------------------
    # Runtime configuration
    # -------------------------------------------------------------------------

    def get_runtime_config(self) -> RuntimeConfigResponse:
        return RuntimeConfigResponse(cache=self._cache.name, **self._cache.get_runtime_config().to_dict())

    async def set_metrics_enabled(self, enabled: bool, user_id: str | None = None) -> RuntimeConfigResponse:
        await self._cache.set_metrics_enabled(enabled)
        logger.info("admin_metrics_toggled", cache=self._cache.name, enabled=enabled, user_id=user_id)
        return self.get_runtime_config()

    async def set_key_metrics_enabled(self, enabled: bool, user_id: str | None = None) -> RuntimeConfigResponse:
        await self._cache.set_key_metrics_enabled(enabled)
        logger.info("admin_key_metrics_toggled", cache=self._cache.name, enabled=enabled, user_id=user_id)
        return self.get_runtime_config()

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def current_metrics(self) -> CurrentMetricsResponse:
        stats = self._cache.get_stats()
        return CurrentMetricsResponse(
            cache=self._cache.name,
            enabled=stats is not None,
            stats=stats,
            persistence=self._cache.metrics.persistence_status(),
        )

    def current_key_metrics(self) -> CurrentKeyMetricsResponse:
        keys = self._cache.get_key_stats()
        return CurrentKeyMetricsResponse(cache=self._cache.name, enabled=keys is not None, keys=keys)

    async def historical_metrics(self, query: HistoricalMetricsQuery | None = None) -> HistoricalMetricsResponse:
        """Persisted rollups of one period plus key records, filtered by time range and optional key."""
        query = query or HistoricalMetricsQuery()
        records = await self._cache.get_metrics(query.period, query.start, query.end)
        key_records = await self._cache.get_key_metrics(query.key, query.start, query.end)
        return HistoricalMetricsResponse(
            cache=self._cache.name,
            period=query.period,
            records=records,
            key_records=key_records,
        )

    async def clear_metrics(self, user_id: str | None = None) -> CurrentMetricsResponse:
        await self._cache.clear_metrics()
        await self._cache.clear_key_metrics()
        logger.warning("admin_metrics_cleared", cache=self._cache.name, user_id=user_id)
        return self.current_metrics()

    async def trigger_persistence(self) -> CurrentMetricsResponse:
        """Flush metrics now."""
        await self._cache.metrics.trigger_persistence()
        return self.current_metrics()
