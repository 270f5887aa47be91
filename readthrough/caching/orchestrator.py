"""
Read-Through Orchestrator
=========================

The hit/miss decision engine. Every read-through entry point (exec, wrap, run,
send) ends up in ``execute()``, which walks the same six stages:

┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.1: KEY RESOLUTION                                      │
│ - options.key, else the call's key spec, else producer identity │
│ - no key: run the producer uncached                             │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.2: CACHE READ                                          │
│ - storage failure: collected, or rethrown with throw_on_errors  │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.3: HIT                                                 │
│ - record hit + latency, return without running the producer     │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.4: PRODUCE + STORE                                     │
│ - producer errors propagate unchanged and are never cached      │
│ - tags resolved against the result, write failures as RT.2      │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.5: MISS                                                │
│ - record miss with latency including the producer               │
└─────────────────────────────────────────────────────────────────┘
                            ↓
┌─────────────────────────────────────────────────────────────────┐
│ STAGE RT.6: RESULT                                              │
│ - bare result, or ReadThroughResult when detailed               │
└─────────────────────────────────────────────────────────────────┘

Concurrent misses on the same key each run the producer and each write the
result; the last write wins.
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from readthrough.caching.key_generator import KeyContext, KeyGenerator
from readthrough.caching.models import (
    CacheEntry,
    CacheErrorRecord,
    CallMetadata,
    KeySpec,
    ReadThroughOptions,
    ReadThroughResult,
)
from readthrough.caching.producers import Producer
from readthrough.caching.tag_index import TagIndex
from readthrough.caching.tag_resolver import TagResolver
from readthrough.caching.templates import PLACEHOLDER_PATTERN, argument_template
from readthrough.core.config.constants import OperationType
from readthrough.core.context import get_call_context
from readthrough.core.interfaces.storage import StorageAdapter
from readthrough.core.logging.logger import get_logger, log_stage
from readthrough.infrastructure.monitoring.key_metrics import AccessMetadata
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine

logger = get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _plain_base_key(spec: Any) -> str | None:
    """A string key spec without placeholders, else None."""
    return spec if isinstance(spec, str) and not PLACEHOLDER_PATTERN.search(spec) else None


class ReadThroughOrchestrator:
    """
    Puts the cache in front of producers.

    Usage:
        orchestrator = ReadThroughOrchestrator(store, keys, tags, tag_index, metrics)
        result = await orchestrator.execute("orders", FunctionProducer(load), ["open"], {"ttl": 60})
    """

    def __init__(
        self,
        store: StorageAdapter,
        key_generator: KeyGenerator,
        tag_resolver: TagResolver,
        tag_index: TagIndex,
        metrics: MetricsEngine,
        default_ttl: float | None = None,
        throw_on_errors: bool = False,
    ):
        self._store = store
        self._key_generator = key_generator
        self._tag_resolver = tag_resolver
        self._tag_index = tag_index
        self._metrics = metrics
        self._default_ttl = default_ttl or None
        self._throw_on_errors = throw_on_errors

    # -------------------------------------------------------------------------
    # Key resolution
    # -------------------------------------------------------------------------

    def resolve_key(
        self,
        key_spec: KeySpec | Mapping[str, Any] | str | None,
        producer: Producer,
        args: Sequence[Any] = (),
        options: ReadThroughOptions | None = None,
    ) -> str | None:
        """
        Key a read-through call would use, or None when it must not be cached.

        A plain base key without placeholders is extended with one segment per
        positional argument, so distinct argument tuples get distinct keys.
        ``options.key`` replaces the call's key spec, but ``{base_key}`` still
        refers to the call's base key.
        """
        if not producer.is_cacheable():
            return None
        context = self.key_context(key_spec, producer, args)
        if options is not None and options.key is not None:
            spec, base_key = options.key, _plain_base_key(options.key)
        else:
            spec, base_key = key_spec, context.base_key

        if base_key is not None:
            return self._key_generator.create_key(
                base_key, context, template=argument_template("{hash}", len(context.args)) if context.args else None
            )
        return self._key_generator.create_key(producer.key_input(), context, template=spec)

    @staticmethod
    def key_context(
        key_spec: KeySpec | Mapping[str, Any] | str | None,
        producer: Producer,
        args: Sequence[Any] = (),
    ) -> KeyContext:
        """Arguments, producer name and base key shared by key and tag templates."""
        base_key = _plain_base_key(key_spec)
        if key_spec is None and producer.key_input() is None:
            base_key = producer.name
        return KeyContext(args=list(args), function_name=producer.name, base_key=base_key)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(
        self,
        key_spec: KeySpec | Mapping[str, Any] | str | None,
        producer: Producer,
        args: Sequence[Any] = (),
        options: ReadThroughOptions | Mapping[str, Any] | None = None,
        detailed: bool = False,
    ) -> Any:
        """
        Serve one read-through call.

        Args:
            key_spec: Base key, key spec or None to derive from the producer
            producer: Operation to put the cache in front of
            args: Positional arguments for the producer and the key
            options: ttl, tags, key, detailed, throw_on_errors, params
            detailed: Force the ReadThroughResult shape

        Returns:
            The bare result, or a ReadThroughResult when detailed

        Raises:
            Exception: Whatever the producer raises, unchanged
            StorageError: Storage failures when throw-on-errors is set
        """
        started = time.perf_counter()
        options = ReadThroughOptions.coerce(options)
        args = list(args)
        throw = self._throw_on_errors if options.throw_on_errors is None else bool(options.throw_on_errors)
        errors: list[CacheErrorRecord] = []

        # STAGE RT.1: key resolution
        cache_key = self.resolve_key(key_spec, producer, args, options)
        access = self._access(producer, options)
        if cache_key is None:
            log_stage(logger, "RT.1", "Producer is not cacheable, running uncached", level="debug", source=producer.name)
            try:
                result = await producer.invoke(args)
            except Exception:
                self._metrics.record_error(None, access)
                raise
            latency = _elapsed_ms(started)
            self._metrics.record_miss(None, latency, access)
            return self._assemble(result, None, False, latency, errors, detailed or options.detailed)

        # STAGE RT.2: cache read
        stored = None
        try:
            stored = await self._store.get(cache_key)
        except Exception as e:
            self._handle_storage_error("get", cache_key, e, errors, throw, access)

        # STAGE RT.3: hit
        if stored is not None:
            latency = _elapsed_ms(started)
            value = CacheEntry.from_stored(cache_key, stored).value
            self._metrics.record_hit(cache_key, latency, access)
            log_stage(logger, "RT.3", "Cache hit", level="debug", cache_key=cache_key, latency_ms=round(latency, 3))
            return self._assemble(value, cache_key, True, latency, errors, detailed or options.detailed)

        # STAGE RT.4: produce and store
        try:
            result = await producer.invoke(args)
        except Exception:
            self._metrics.record_error(cache_key, access)
            raise
        produced_latency = _elapsed_ms(started)

        tags = self._tag_resolver.resolve_tags(
            options.tags,
            payload=result,
            params=options.params,
            context=self.key_context(key_spec, producer, args),
        )
        ttl = options.ttl if options.ttl is not None else self._default_ttl
        entry = CacheEntry(key=cache_key, value=result, tags=tags, ttl=ttl)
        write_started = time.perf_counter()
        try:
            await self._store.set(cache_key, entry.to_envelope(), ttl=ttl)
            if tags:
                await self._tag_index.add(cache_key, tags)
            self._metrics.record_set(cache_key, _elapsed_ms(write_started), access)
        except Exception as e:
            self._handle_storage_error("set", cache_key, e, errors, throw, access)

        # STAGE RT.5: miss
        self._metrics.record_miss(cache_key, produced_latency, access)
        log_stage(
            logger,
            "RT.5",
            "Cache miss",
            level="debug",
            cache_key=cache_key,
            tags=tags,
            latency_ms=round(produced_latency, 3),
        )

        # STAGE RT.6: result
        return self._assemble(result, cache_key, False, produced_latency, errors, detailed or options.detailed)

    async def evict(
        self,
        key_spec: KeySpec | Mapping[str, Any] | str | None,
        producer: Producer,
        args: Sequence[Any] = (),
        options: ReadThroughOptions | Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Delete the entry the matching read-through call would use.

        Returns:
            True if an entry was deleted
        """
        started = time.perf_counter()
        options = ReadThroughOptions.coerce(options)
        cache_key = self.resolve_key(key_spec, producer, args, options)
        if cache_key is None:
            return False
        access = self._access(producer, options, operation="evict")
        try:
            deleted = await self._tag_index.delete_entry(cache_key)
        except Exception:
            self._metrics.record_error(cache_key, access)
            raise
        self._metrics.record_delete(cache_key, _elapsed_ms(started), access)
        log_stage(logger, "RT.6", "Entry evicted", level="debug", cache_key=cache_key, deleted=deleted)
        return deleted

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _handle_storage_error(
        self,
        operation: str,
        cache_key: str,
        error: Exception,
        errors: list[CacheErrorRecord],
        throw: bool,
        access: AccessMetadata,
    ) -> None:
        self._metrics.record_error(cache_key, access)
        log_stage(
            logger,
            "RT.2" if operation == "get" else "RT.4",
            f"Cache {operation} failed",
            level="warning",
            cache_key=cache_key,
            error=str(error),
            error_type=type(error).__name__,
            rethrow=throw,
        )
        if throw:
            raise error
        errors.append(CacheErrorRecord(operation=operation, message=str(error), error_type=type(error).__name__))

    @staticmethod
    def _access(producer: Producer, options: ReadThroughOptions, operation: str | None = None) -> AccessMetadata:
        ambient = get_call_context()
        return AccessMetadata(
            operation_type=OperationType.READ_THROUGH,
            data_type=producer.data_type,
            operation=operation or producer.operation,
            source=producer.name,
            tenant=ambient.tenant,
            user=ambient.user,
            locale=ambient.locale,
            options=options.describe(),
        )

    @staticmethod
    def _assemble(
        result: Any,
        cache_key: str | None,
        hit: bool,
        latency: float,
        errors: list[CacheErrorRecord],
        detailed: bool,
    ) -> Any:
        if not detailed:
            return result
        return ReadThroughResult(
            result=result,
            cache_key=cache_key,
            metadata=CallMetadata(hit=hit, latency=latency),
            cache_errors=errors,
        )
