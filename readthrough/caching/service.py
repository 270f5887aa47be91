"""
Caching Service

The cache handle: wires one storage adapter to the key generator, tag
resolver, tag index, metrics engine and runtime configuration, and exposes

- ``rt``: the read-through family (exec, wrap, run, send, evict), detailed results
- ``exec/wrap/run/send``: the same calls returning the bare result
- ``set/get/has/delete/clear/delete_by_tag``: the direct key-value facade
- metrics, runtime toggles and lifecycle

STAGE-SVC.0: Service construction
STAGE-SVC.1: Initialization
STAGE-SVC.2: Shutdown

Named instances are kept in a module-level registry:

    cache = await init_cache("orders")
    ...
    await close_cache("orders")
"""

import functools
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from readthrough.caching.direct import DirectFacade
from readthrough.caching.hooks import DirectHooks
from readthrough.caching.key_generator import KeyContext, KeyGenerator
from readthrough.caching.models import CacheEntry, KeySpec, ReadThroughOptions, ReadThroughResult, TagSpec
from readthrough.caching.orchestrator import ReadThroughOrchestrator
from readthrough.caching.producers import Producer, QueryProducer, RemoteCallProducer, as_producer
from readthrough.caching.runtime_config import RuntimeConfig, RuntimeConfigManager
from readthrough.caching.tag_index import TagIndex
from readthrough.caching.tag_resolver import TagResolver
from readthrough.core.config.constants import MetricsPeriod
from readthrough.core.config.settings import Settings, get_settings
from readthrough.core.exceptions import MetricsPersistenceError
from readthrough.core.interfaces.host import QueryLike, RemoteService, RequestLike
from readthrough.core.interfaces.metrics import MetricsRepository
from readthrough.core.interfaces.storage import ManagedStorageAdapter, StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine
from readthrough.infrastructure.monitoring.persistence import HistoricalMetricsRecord, KeyMetricsRecord
from readthrough.infrastructure.storage.factory import create_storage_adapter

logger = get_logger(__name__)

KeyArg = KeySpec | Mapping[str, Any] | str | None
OptionsArg = ReadThroughOptions | Mapping[str, Any] | None


class ReadThroughAPI:
    """
    Read-through entry points returning ReadThroughResult.

    Usage:
        envelope = await cache.rt.exec("orders", load_orders, ["open"], {"ttl": 60})
        envelope.metadata.hit  # False, then True on the next call
    """

    def __init__(self, orchestrator: ReadThroughOrchestrator):
        self._orchestrator = orchestrator

    async def exec(
        self,
        key: KeyArg,
        fn: Producer | Callable[..., Any],
        args: Sequence[Any] = (),
        options: OptionsArg = None,
    ) -> ReadThroughResult:
        """Call ``fn(*args)`` through the cache."""
        return await self._orchestrator.execute(key, as_producer(fn), args, options, detailed=True)

    def wrap(
        self,
        key: KeyArg,
        fn: Callable[..., Any],
        options: OptionsArg = None,
    ) -> Callable[..., Awaitable[ReadThroughResult]]:
        """Return an async callable that serves ``fn`` through the cache."""
        producer = as_producer(fn)

        @functools.wraps(fn)
        async def cached(*args: Any) -> ReadThroughResult:
            return await self._orchestrator.execute(key, producer, args, options, detailed=True)

        return cached

    async def run(
        self,
        query: QueryLike,
        executor: Callable[[QueryLike], Any],
        options: OptionsArg = None,
    ) -> ReadThroughResult:
        """Run a query through the cache; only read-only queries are cached."""
        return await self._orchestrator.execute(None, QueryProducer(query, executor), (), options, detailed=True)

    async def send(
        self,
        request: RequestLike,
        service: RemoteService,
        options: OptionsArg = None,
    ) -> ReadThroughResult:
        """Send a request through the cache; mutating methods are never cached."""
        return await self._orchestrator.execute(
            None, RemoteCallProducer(request, service), (), options, detailed=True
        )

    async def evict(
        self,
        key: KeyArg,
        fn: Producer | Callable[..., Any],
        args: Sequence[Any] = (),
        options: OptionsArg = None,
    ) -> bool:
        """Delete the entry ``exec(key, fn, args, options)`` would read."""
        return await self._orchestrator.evict(key, as_producer(fn), args, options)


class CachingService:
    """
    One cache instance.

    Usage:
        cache = CachingService("orders")
        await cache.initialize()
        await cache.set("k", 1, ttl=60, tags=["orders"])
        rows = await cache.exec("orders", load_orders, ["open"])
        await cache.shutdown()
    """

    def __init__(
        self,
        name: str | None = None,
        storage: StorageAdapter | None = None,
        settings: Settings | None = None,
        metrics_repository: MetricsRepository | None = None,
        runtime_store: StorageAdapter | None = None,
    ):
        self._settings = settings or get_settings()
        cache_settings = self._settings.cache
        self._name = name or cache_settings.CACHE_NAME
        self._storage = storage or create_storage_adapter(self._settings)
        self._initialized = False

        self._runtime_config = RuntimeConfigManager(
            self._name, RuntimeConfig.from_settings(self._settings), store=runtime_store
        )
        self._metrics = MetricsEngine(self._name, self._runtime_config, metrics_repository, self._settings)
        self._key_generator = KeyGenerator(self._runtime_config, key_prefix=cache_settings.CACHE_KEY_PREFIX)
        self._tag_resolver = TagResolver(self._key_generator)
        self._tag_index = TagIndex(self._storage)

        default_ttl = cache_settings.CACHE_DEFAULT_TTL or None
        throw_on_errors = cache_settings.CACHE_THROW_ON_ERRORS
        self._orchestrator = ReadThroughOrchestrator(
            self._storage,
            self._key_generator,
            self._tag_resolver,
            self._tag_index,
            self._metrics,
            default_ttl=default_ttl,
            throw_on_errors=throw_on_errors,
        )
        self._direct = DirectFacade(
            self._storage,
            self._tag_index,
            self._tag_resolver,
            self._metrics,
            hooks=DirectHooks(),
            default_ttl=default_ttl,
            throw_on_errors=throw_on_errors,
        )
        self.rt = ReadThroughAPI(self._orchestrator)

        log_stage(
            logger,
            "SVC.0",
            "Caching service created",
            cache=self._name,
            storage=type(self._storage).__name__,
            default_ttl=default_ttl,
            throw_on_errors=throw_on_errors,
        )

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    @property
    def runtime_config(self) -> RuntimeConfigManager:
        return self._runtime_config

    @property
    def metrics(self) -> MetricsEngine:
        return self._metrics

    @property
    def hooks(self) -> DirectHooks:
        return self._direct.hooks

    @property
    def key_generator(self) -> KeyGenerator:
        return self._key_generator

    @property
    def tag_resolver(self) -> TagResolver:
        return self._tag_resolver

    @property
    def tag_index(self) -> TagIndex:
        return self._tag_index

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Connect the adapter, load runtime toggles and rebuild the tag index.

        STAGE-SVC.1: Initialization

        Raises:
            CacheConnectionError: If a managed adapter cannot connect
        """
        if self._initialized:
            return
        if isinstance(self._storage, ManagedStorageAdapter):
            await self._storage.connect()
        await self._runtime_config.load()
        tags = await self._tag_index.rebuild()
        self._metrics.start()
        self._initialized = True
        log_stage(logger, "SVC.1", "Caching service initialized", cache=self._name, tags=tags)

    async def shutdown(self) -> None:
        """
        Flush metrics, stop the persistence loop and disconnect.

        STAGE-SVC.2: Shutdown
        """
        config = self._runtime_config.current
        if config.metrics_enabled or config.key_metrics_enabled:
            try:
                await self._metrics.persist_metrics()
            except MetricsPersistenceError as e:
                log_stage(logger, "SVC.2", "Final metrics flush failed", level="warning", cache=self._name, error=str(e))
        await self._metrics.stop()
        if isinstance(self._storage, ManagedStorageAdapter):
            await self._storage.disconnect()
        self._initialized = False
        log_stage(logger, "SVC.2", "Caching service shut down", cache=self._name)

    async def health_check(self) -> dict[str, Any]:
        """
        Health of the adapter and the metrics loop.

        Returns:
            Dict with ``status`` healthy or degraded
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "cache": self._name,
            "initialized": self._initialized,
            "storage": {"status": "healthy", "adapter": type(self._storage).__name__},
            "metrics": self._metrics.persistence_status(),
            "runtime_config": self._runtime_config.current.to_dict(),
        }
        check = getattr(self._storage, "health_check", None)
        if check is not None:
            try:
                health["storage"] = await check()
            except Exception as e:
                health["storage"] = {"status": "error", "error": str(e)}
        if health["storage"].get("status") != "healthy":
            health["status"] = "degraded"
        return health

    # -------------------------------------------------------------------------
    # Read-through, bare results
    # -------------------------------------------------------------------------

    async def exec(
        self,
        key: KeyArg,
        fn: Producer | Callable[..., Any],
        args: Sequence[Any] = (),
        options: OptionsArg = None,
    ) -> Any:
        return await self._orchestrator.execute(key, as_producer(fn), args, options)

    def wrap(self, key: KeyArg, fn: Callable[..., Any], options: OptionsArg = None) -> Callable[..., Awaitable[Any]]:
        producer = as_producer(fn)

        @functools.wraps(fn)
        async def cached(*args: Any) -> Any:
            return await self._orchestrator.execute(key, producer, args, options)

        return cached

    async def run(self, query: QueryLike, executor: Callable[[QueryLike], Any], options: OptionsArg = None) -> Any:
        return await self._orchestrator.execute(None, QueryProducer(query, executor), (), options)

    async def send(self, request: RequestLike, service: RemoteService, options: OptionsArg = None) -> Any:
        return await self._orchestrator.execute(None, RemoteCallProducer(request, service), (), options)

    # -------------------------------------------------------------------------
    # Direct key-value facade
    # -------------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[TagSpec | Mapping[str, Any] | str] | None = None,
    ) -> None:
        await self._direct.set(key, value, ttl=ttl, tags=tags)

    async def get(self, key: str) -> Any | None:
        return await self._direct.get(key)

    async def has(self, key: str) -> bool:
        return await self._direct.has(key)

    async def delete(self, key: str) -> bool:
        return await self._direct.delete(key)

    async def clear(self) -> None:
        await self._direct.clear()

    async def delete_by_tag(self, tag: str) -> int:
        return await self._direct.delete_by_tag(tag)

    async def entry(self, key: str) -> CacheEntry | None:
        return await self._direct.entry(key)

    async def get_raw(self, key: str) -> Any | None:
        return await self._direct.get_raw(key)

    async def metadata(self, key: str) -> dict[str, Any] | None:
        return await self._direct.metadata(key)

    async def tags(self, key: str) -> list[str]:
        return await self._direct.tags(key)

    def iterate(self) -> AsyncIterator[CacheEntry]:
        return self._direct.iterate()

    # -------------------------------------------------------------------------
    # Key and tag derivation
    # -------------------------------------------------------------------------

    def create_key(self, input: Any, context: KeyContext | None = None, template: KeyArg = None) -> str | None:
        return self._key_generator.create_key(input, context, template)

    def resolve_tags(
        self,
        specs: Iterable[TagSpec | Mapping[str, Any] | str],
        payload: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return self._tag_resolver.resolve_tags(specs, payload=payload, params=params)

    # -------------------------------------------------------------------------
    # Runtime configuration
    # -------------------------------------------------------------------------

    def get_runtime_config(self) -> RuntimeConfig:
        return self._runtime_config.current

    async def set_metrics_enabled(self, enabled: bool) -> RuntimeConfig:
        return await self._runtime_config.set_metrics_enabled(enabled)

    async def set_key_metrics_enabled(self, enabled: bool) -> RuntimeConfig:
        return await self._runtime_config.set_key_metrics_enabled(enabled)

    async def set_awareness(
        self, tenant: bool | None = None, user: bool | None = None, locale: bool | None = None
    ) -> RuntimeConfig:
        return await self._runtime_config.set_awareness(tenant=tenant, user=user, locale=locale)

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any] | None:
        """Live aggregate stats, or None while metrics are disabled."""
        return self._metrics.current_stats()

    def get_key_stats(self, key: str | None = None) -> dict[str, Any] | None:
        return self._metrics.current_key_metrics(key)

    async def get_metrics(
        self,
        period: MetricsPeriod | str = MetricsPeriod.HOURLY,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoricalMetricsRecord]:
        return await self._metrics.get_metrics(period, start, end)

    async def get_key_metrics(
        self, key: str | None = None, start: datetime | None = None, end: datetime | None = None
    ) -> list[KeyMetricsRecord]:
        return await self._metrics.get_key_metrics(key, start, end)

    async def persist_metrics(self) -> bool:
        return await self._metrics.persist_metrics()

    async def clear_metrics(self) -> None:
        await self._metrics.clear_metrics()

    async def clear_key_metrics(self) -> None:
        await self._metrics.clear_key_metrics()


# =============================================================================
# NAMED INSTANCES
# =============================================================================

_services: dict[str, CachingService] = {}


def get_caching_service(name: str | None = None, **kwargs: Any) -> CachingService:
    """
    Get the named cache instance, creating it on first use.

    Args:
        name: Instance name (defaults to CACHE_NAME)
        **kwargs: Constructor arguments, used only on creation

    Returns:
        CachingService: The registered instance
    """
    name = name or (kwargs.get("settings") or get_settings()).cache.CACHE_NAME
    service = _services.get(name)
    if service is None:
        service = CachingService(name, **kwargs)
        _services[name] = service
    return service


async def init_cache(name: str | None = None, **kwargs: Any) -> CachingService:
    """
    Get and initialize the named cache instance.

    Returns:
        CachingService: Initialized instance
    """
    service = get_caching_service(name, **kwargs)
    await service.initialize()
    return service


async def close_cache(name: str | None = None) -> None:
    """Shut down and unregister the named cache instance."""
    name = name or get_settings().cache.CACHE_NAME
    service = _services.pop(name, None)
    if service:
        await service.shutdown()
