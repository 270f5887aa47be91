"""
Metrics Engine

Aggregate and per-key metrics of one cache instance.

Counting domains:
- read-through: hits, misses, sets, deletes and errors, with latency samples
- native: direct set/get/delete/clear/delete-by-tag calls and their errors,
  counted only

Toggles are read from the runtime configuration on every call. With metrics
disabled, recording is a no-op and readers get None rather than zeroed stats,
so "never measured" stays distinguishable from "measured and idle". Aggregate
and key metrics are independent toggles.

Persistence swaps the live window for a fresh one, then merges the swapped
window into every configured rollup period. On failure the swapped window is
folded back into the live one, so the next flush retries it.

STAGE-M.1: Read-through recording
STAGE-M.2: Native recording
STAGE-M.3: Persistence
STAGE-M.4: Persistence loop
"""

import asyncio
import contextlib
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from readthrough.core.config.constants import (
    MAX_KEY_LATENCY_SAMPLES,
    MAX_LATENCY_SAMPLES,
    MAX_TRACKED_KEYS,
    PERSISTENCE_INTERVAL_SECONDS,
    LatencyOutcome,
    MetricsPeriod,
)
from readthrough.core.config.settings import Settings
from readthrough.core.exceptions import MetricsPersistenceError
from readthrough.core.interfaces.metrics import MetricsRepository
from readthrough.core.logging.logger import get_logger, log_stage
from readthrough.infrastructure.monitoring.key_metrics import AccessMetadata, KeyDelta, KeyMetricsTable
from readthrough.infrastructure.monitoring.persistence import (
    HistoricalMetricsRecord,
    InMemoryMetricsRepository,
    KeyMetricsRecord,
    WindowSummary,
    period_id,
)
from readthrough.infrastructure.monitoring.prometheus_exporter import PrometheusExporter
from readthrough.infrastructure.monitoring.window import MetricsWindow, derive_stats

if TYPE_CHECKING:
    from readthrough.caching.runtime_config import RuntimeConfig, RuntimeConfigManager

logger = get_logger(__name__)


class MetricsEngine:
    """
    Metrics of one cache instance.

    Usage:
        engine = MetricsEngine("orders", runtime_config)
        engine.record_miss("orders:open", 12.5)
        stats = engine.current_stats()
        await engine.persist_metrics()
    """

    def __init__(
        self,
        cache_name: str,
        runtime_config: "RuntimeConfigManager",
        repository: MetricsRepository | None = None,
        settings: Settings | None = None,
        exporter: PrometheusExporter | None = None,
    ):
        self._cache_name = cache_name
        self._runtime_config = runtime_config
        self._repository: MetricsRepository = repository or InMemoryMetricsRepository()

        if settings is not None:
            metrics = settings.metrics
            self._max_samples = metrics.METRICS_MAX_LATENCY_SAMPLES
            max_key_samples = metrics.METRICS_MAX_KEY_LATENCY_SAMPLES
            max_keys = metrics.METRICS_MAX_TRACKED_KEYS
            self._interval = metrics.METRICS_PERSISTENCE_INTERVAL
            self._periods = [MetricsPeriod(p) for p in metrics.METRICS_ROLLUP_PERIODS]
            if exporter is None and metrics.METRICS_PROMETHEUS_ENABLED:
                exporter = PrometheusExporter(cache_name)
        else:
            self._max_samples = MAX_LATENCY_SAMPLES
            max_key_samples = MAX_KEY_LATENCY_SAMPLES
            max_keys = MAX_TRACKED_KEYS
            self._interval = PERSISTENCE_INTERVAL_SECONDS
            self._periods = [MetricsPeriod.HOURLY, MetricsPeriod.DAILY]

        self._exporter = exporter
        self._window = MetricsWindow(max_samples=self._max_samples)
        self._keys = KeyMetricsTable(max_keys=max_keys, max_samples=max_key_samples)
        self._task: asyncio.Task | None = None
        self._last_persisted: datetime | None = None
        self._last_error: str | None = None
        self._persist_count = 0

        runtime_config.add_listener(self._on_config_change)

    @property
    def cache_name(self) -> str:
        return self._cache_name

    @property
    def repository(self) -> MetricsRepository:
        return self._repository

    @property
    def exporter(self) -> PrometheusExporter | None:
        return self._exporter

    # -------------------------------------------------------------------------
    # Read-through recording
    # -------------------------------------------------------------------------

    def record_hit(self, key: str | None, latency_ms: float, metadata: AccessMetadata | None = None) -> None:
        self._record("hits", key, latency_ms, LatencyOutcome.HIT, metadata)
        if self._exporter and self._runtime_config.current.metrics_enabled:
            self._exporter.record_hit(latency_ms)

    def record_miss(self, key: str | None, latency_ms: float, metadata: AccessMetadata | None = None) -> None:
        self._record("misses", key, latency_ms, LatencyOutcome.MISS, metadata)
        if self._exporter and self._runtime_config.current.metrics_enabled:
            self._exporter.record_miss(latency_ms)

    def record_set(self, key: str | None, latency_ms: float, metadata: AccessMetadata | None = None) -> None:
        self._record("sets", key, latency_ms, LatencyOutcome.SET, metadata)
        if self._exporter and self._runtime_config.current.metrics_enabled:
            self._exporter.record_latency(LatencyOutcome.SET.value, latency_ms)

    def record_delete(self, key: str | None, latency_ms: float, metadata: AccessMetadata | None = None) -> None:
        self._record("deletes", key, latency_ms, LatencyOutcome.DELETE, metadata)
        if self._exporter and self._runtime_config.current.metrics_enabled:
            self._exporter.record_latency(LatencyOutcome.DELETE.value, latency_ms)

    def record_error(self, key: str | None = None, metadata: AccessMetadata | None = None) -> None:
        self._record("errors", key, None, None, metadata)
        if self._exporter and self._runtime_config.current.metrics_enabled:
            self._exporter.record_error()

    def _record(
        self,
        counter: str,
        key: str | None,
        latency_ms: float | None,
        outcome: LatencyOutcome | None,
        metadata: AccessMetadata | None,
    ) -> None:
        config = self._runtime_config.current
        if config.metrics_enabled:
            self._window.record(counter, latency_ms, outcome)
        if config.key_metrics_enabled and key:
            self._keys.entry(key, metadata).record(counter, latency_ms, outcome)
            self._keys.prune()

    # -------------------------------------------------------------------------
    # Native recording
    # -------------------------------------------------------------------------

    def record_native_set(self, key: str, metadata: AccessMetadata | None = None) -> None:
        self._record_native("native_sets", "set", key, metadata)

    def record_native_get(self, key: str, hit: bool, metadata: AccessMetadata | None = None) -> None:
        self._record_native("native_gets", "get", key, metadata, extra="native_hits" if hit else "native_misses")

    def record_native_delete(self, key: str, metadata: AccessMetadata | None = None) -> None:
        self._record_native("native_deletes", "delete", key, metadata)

    def record_native_clear(self) -> None:
        self._record_native("native_clears", "clear", None, None)

    def record_native_delete_by_tag(self, tag: str) -> None:
        self._record_native("native_delete_by_tags", "delete_by_tag", None, None)

    def record_native_error(self, key: str | None = None, metadata: AccessMetadata | None = None) -> None:
        config = self._runtime_config.current
        if config.metrics_enabled:
            self._window.record("native_errors")
            if self._exporter:
                self._exporter.record_native_error()
        if config.key_metrics_enabled and key:
            self._keys.entry(key, metadata).record("native_errors")
            self._keys.prune()

    def _record_native(
        self,
        counter: str,
        operation: str,
        key: str | None,
        metadata: AccessMetadata | None,
        extra: str | None = None,
    ) -> None:
        config = self._runtime_config.current
        if config.metrics_enabled:
            self._window.record(counter)
            if self._exporter:
                self._exporter.record_native(operation)
        if config.key_metrics_enabled and key:
            entry = self._keys.entry(key, metadata)
            entry.record(counter)
            if extra:
                entry.record(extra)
            self._keys.prune()

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def current_stats(self) -> dict[str, Any] | None:
        """Stats of the current window, or None while metrics are disabled."""
        if not self._runtime_config.current.metrics_enabled:
            return None
        stats = derive_stats(self._window.counters, self._window.latencies, self._window.elapsed_seconds)
        stats.update(
            {
                "cache": self._cache_name,
                "window_started_at": self._window.started_at.isoformat(),
                "last_persisted": self._last_persisted.isoformat() if self._last_persisted else None,
            }
        )
        return stats

    def current_key_metrics(self, key: str | None = None) -> dict[str, Any] | None:
        """
        Live per-key stats.

        Returns:
            None while key metrics are disabled; otherwise the stats of ``key``
            (None if the key was never seen), or a mapping of every tracked key
        """
        if not self._runtime_config.current.key_metrics_enabled:
            return None
        if key is not None:
            entry = self._keys.get(key)
            return entry.stats() if entry else None
        return self._keys.snapshot()

    async def get_metrics(
        self,
        period: MetricsPeriod | str = MetricsPeriod.HOURLY,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoricalMetricsRecord]:
        """Historical rollups of one period kind, newest first."""
        return await self._repository.list_records(self._cache_name, MetricsPeriod(period).value, start, end)

    async def get_key_metrics(
        self,
        key: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[KeyMetricsRecord]:
        """Persisted key records, optionally for one key, most recently accessed first."""
        return await self._repository.list_key_records(self._cache_name, key, start, end)

    def persistence_status(self) -> dict[str, Any]:
        config = self._runtime_config.current
        return {
            "cache": self._cache_name,
            "running": self.is_running,
            "interval_seconds": self._interval,
            "periods": [p.value for p in self._periods],
            "last_persisted": self._last_persisted.isoformat() if self._last_persisted else None,
            "last_error": self._last_error,
            "persist_count": self._persist_count,
            "metrics_enabled": config.metrics_enabled,
            "key_metrics_enabled": config.key_metrics_enabled,
            "pending_requests": self._window.counters.total_requests,
            "tracked_keys": len(self._keys),
        }

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def persist_metrics(self) -> bool:
        """
        Merge the current window and key deltas into the repository.

        STAGE-M.3: Persistence

        An empty window writes nothing and is still replaced.

        Returns:
            True if anything was written

        Raises:
            MetricsPersistenceError: If the repository fails; the unflushed
                data is folded back into the live window
        """
        now = datetime.now(timezone.utc)
        window, self._window = self._window, MetricsWindow(max_samples=self._max_samples)
        deltas = [entry.drain() for entry in self._keys.entries() if entry.has_pending()]

        if window.is_empty() and not deltas:
            log_stage(logger, "M.3", "Nothing to persist", level="debug", cache=self._cache_name)
            return False

        try:
            if not window.is_empty():
                summary = WindowSummary.build(window.counters.to_dict(), window.latencies, window.elapsed_seconds)
                for period in self._periods:
                    record = await self._repository.get_record(self._cache_name, period_id(period, now))
                    record = record or HistoricalMetricsRecord.empty(self._cache_name, period, now)
                    await self._repository.put_record(record.merged(summary))
            for delta in deltas:
                await self._persist_key_delta(delta)
        except Exception as e:
            self._window.absorb(window)
            self._restore_deltas(deltas)
            self._last_error = str(e)
            log_stage(
                logger,
                "M.3",
                "Metrics persistence failed, keeping unflushed window",
                level="error",
                cache=self._cache_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise MetricsPersistenceError.from_exception(
                e, message=f"Failed to persist metrics for cache {self._cache_name}: {e}", cache=self._cache_name
            ) from e

        self._last_persisted = now
        self._last_error = None
        self._persist_count += 1
        log_stage(
            logger,
            "M.3",
            "Metrics persisted",
            level="debug",
            cache=self._cache_name,
            requests=window.counters.total_requests,
            native_operations=window.counters.total_native_operations,
            keys=len(deltas),
        )
        return True

    async def _persist_key_delta(self, delta: KeyDelta) -> None:
        record = await self._repository.get_key_record(self._cache_name, delta.key)
        record = record or KeyMetricsRecord.empty(self._cache_name, delta.key)
        first_seen = record.first_seen or delta.first_seen
        summary = WindowSummary.build(delta.counters.to_dict(), delta.latencies, 0.0)
        merged = record.merged(
            summary,
            **delta.metadata.to_dict(),
            first_seen=first_seen,
            last_access=delta.last_access,
            window_seconds=(delta.last_access - first_seen).total_seconds(),
        )
        await self._repository.put_key_record(merged)

    def _restore_deltas(self, deltas: Sequence[KeyDelta]) -> None:
        for delta in deltas:
            entry = self._keys.get(delta.key)
            if entry is not None:
                entry.restore(delta)

    async def trigger_persistence(self) -> dict[str, Any]:
        """Flush now and report the persistence status."""
        await self.persist_metrics()
        return self.persistence_status()

    # -------------------------------------------------------------------------
    # Clearing
    # -------------------------------------------------------------------------

    async def clear_metrics(self) -> None:
        """Reset the live window and delete the persisted rollups."""
        self._window = MetricsWindow(max_samples=self._max_samples)
        await self._repository.delete_records(self._cache_name)
        log_stage(logger, "M.5", "Metrics cleared", cache=self._cache_name)

    async def clear_key_metrics(self) -> None:
        """Drop every tracked key and delete the persisted key records."""
        self._keys.clear()
        await self._repository.delete_key_records(self._cache_name)
        log_stage(logger, "M.5", "Key metrics cleared", cache=self._cache_name)

    # -------------------------------------------------------------------------
    # Persistence loop
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start the background persistence loop.

        STAGE-M.4: Persistence loop

        The loop only runs while at least one toggle is on and needs a running
        event loop; otherwise this is a no-op.

        Returns:
            True if the loop is running afterwards
        """
        config = self._runtime_config.current
        if not (config.metrics_enabled or config.key_metrics_enabled):
            return False
        if self.is_running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self._run(), name=f"metrics-persistence-{self._cache_name}")
        log_stage(logger, "M.4", "Persistence loop started", cache=self._cache_name, interval=self._interval)
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        log_stage(logger, "M.4", "Persistence loop stopped", cache=self._cache_name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.persist_metrics()
            except MetricsPersistenceError:
                # Already logged; the window is retried on the next tick
                continue

    def _on_config_change(self, previous: "RuntimeConfig", current: "RuntimeConfig") -> None:
        if current.metrics_enabled or current.key_metrics_enabled:
            self.start()
        elif self._task is not None:
            self._task.cancel()
            self._task = None
            log_stage(logger, "M.4", "Persistence loop stopped, metrics disabled", cache=self._cache_name)

    async def dispose(self) -> None:
        """Stop the loop and drop in-memory state without flushing."""
        await self.stop()
        self._window = MetricsWindow(max_samples=self._max_samples)
        self._keys.clear()
