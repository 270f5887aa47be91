"""
Unit Tests for the Metrics Engine

Tests toggles, counting domains, persistence and failure recovery.
"""

from unittest.mock import AsyncMock

import pytest

from readthrough.caching.runtime_config import RuntimeConfig, RuntimeConfigManager
from readthrough.core.config.constants import MetricsPeriod
from readthrough.core.exceptions import MetricsPersistenceError
from readthrough.infrastructure.monitoring.key_metrics import AccessMetadata
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine
from readthrough.infrastructure.monitoring.persistence import InMemoryMetricsRepository


def _engine(metrics=True, key_metrics=True, repository=None):
    manager = RuntimeConfigManager("c", RuntimeConfig(metrics_enabled=metrics, key_metrics_enabled=key_metrics))
    return MetricsEngine("c", manager, repository=repository), manager


@pytest.mark.unit
class TestToggles:
    def test_disabled_metrics_read_as_none(self):
        engine, _ = _engine(metrics=False, key_metrics=False)
        engine.record_hit("k", 1.0)

        assert engine.current_stats() is None
        assert engine.current_key_metrics() is None

    def test_enabled_idle_window_reads_as_zero(self):
        engine, _ = _engine()
        stats = engine.current_stats()

        assert stats["hits"] == 0
        assert stats["cache"] == "c"

    def test_toggles_are_independent(self):
        engine, _ = _engine(metrics=False, key_metrics=True)
        engine.record_miss("k", 3.0)

        assert engine.current_stats() is None
        assert engine.current_key_metrics("k")["misses"] == 1

    @pytest.mark.asyncio
    async def test_toggle_takes_effect_immediately(self):
        engine, manager = _engine(metrics=False, key_metrics=False)
        engine.record_hit("k", 1.0)

        await manager.set_metrics_enabled(True)
        engine.record_hit("k", 1.0)

        assert engine.current_stats()["hits"] == 1
        await engine.stop()


@pytest.mark.unit
class TestRecording:
    def test_error_has_no_latency(self):
        engine, _ = _engine()
        engine.record_error("k")

        stats = engine.current_stats()

        assert stats["errors"] == 1
        assert stats["total_requests"] == 0

    def test_none_key_skips_key_metrics(self):
        engine, _ = _engine()
        engine.record_miss(None, 1.0)

        assert engine.current_stats()["misses"] == 1
        assert engine.current_key_metrics() == {}

    def test_key_metadata_is_kept(self):
        engine, _ = _engine()
        engine.record_hit("k", 1.0, AccessMetadata(data_type="Query", operation="run", tenant="acme"))
        engine.record_hit("k", 1.0, AccessMetadata(data_type="Query"))

        key_stats = engine.current_key_metrics("k")

        assert key_stats["hits"] == 2
        assert key_stats["tenant"] == "acme"
        assert key_stats["operation"] == "run"

    def test_native_operations_counted_separately(self):
        engine, _ = _engine()
        engine.record_native_get("k", hit=False)
        engine.record_native_clear()
        engine.record_native_delete_by_tag("t")
        engine.record_native_error("k")

        stats = engine.current_stats()

        assert stats["total_native_operations"] == 3
        assert stats["native_errors"] == 1
        assert stats["total_requests"] == 0
        assert engine.current_key_metrics("k")["native_misses"] == 1

    def test_percentiles_from_recorded_latencies(self):
        engine, _ = _engine()
        for latency in range(1, 101):
            engine.record_hit("k", float(latency))

        stats = engine.current_stats()

        assert stats["p95_hit_latency"] == 96.0
        assert stats["p99_hit_latency"] == 100.0
        assert stats["avg_hit_latency"] <= stats["p95_hit_latency"] <= stats["p99_hit_latency"]


@pytest.mark.unit
class TestPersistence:
    @pytest.mark.asyncio
    async def test_empty_window_persists_nothing(self):
        repository = InMemoryMetricsRepository()
        engine, _ = _engine(repository=repository)

        assert await engine.persist_metrics() is False
        assert await engine.persist_metrics() is False
        assert await engine.get_metrics(MetricsPeriod.HOURLY) == []

    @pytest.mark.asyncio
    async def test_flush_merges_into_every_period(self):
        engine, _ = _engine()
        engine.record_hit("k", 2.0)
        engine.record_miss("k", 4.0)

        assert await engine.persist_metrics() is True
        engine.record_hit("k", 2.0)
        await engine.persist_metrics()

        hourly = await engine.get_metrics("hourly")
        daily = await engine.get_metrics("daily")
        assert hourly[0].hits == 2
        assert hourly[0].misses == 1
        assert daily[0].hits == 2
        assert engine.current_stats()["hits"] == 0

    @pytest.mark.asyncio
    async def test_key_records_accumulate(self):
        engine, _ = _engine()
        engine.record_hit("k", 1.0, AccessMetadata(source="load"))
        await engine.persist_metrics()
        engine.record_hit("k", 3.0)
        await engine.persist_metrics()

        records = await engine.get_key_metrics("k")

        assert records[0].hits == 2
        assert records[0].avg_hit_latency == 2.0
        assert records[0].source == "load"

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_window(self):
        repository = InMemoryMetricsRepository()
        repository.put_record = AsyncMock(side_effect=RuntimeError("disk full"))
        engine, _ = _engine(key_metrics=False, repository=repository)
        engine.record_hit("k", 1.0)

        with pytest.raises(MetricsPersistenceError):
            await engine.persist_metrics()

        assert engine.current_stats()["hits"] == 1
        assert engine.persistence_status()["last_error"] == "disk full"

    @pytest.mark.asyncio
    async def test_clear_metrics(self):
        engine, _ = _engine()
        engine.record_hit("k", 1.0)
        await engine.persist_metrics()
        engine.record_hit("k", 1.0)

        await engine.clear_metrics()
        await engine.clear_key_metrics()

        assert engine.current_stats()["hits"] == 0
        assert await engine.get_metrics() == []
        assert await engine.get_key_metrics() == []
        assert engine.current_key_metrics() == {}


@pytest.mark.unit
class TestPersistenceLoop:
    @pytest.mark.asyncio
    async def test_loop_follows_toggles(self):
        engine, manager = _engine(metrics=False, key_metrics=False)

        assert engine.start() is False
        await manager.set_key_metrics_enabled(True)
        assert engine.is_running

        await manager.set_key_metrics_enabled(False)
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        engine, _ = _engine()
        engine.start()

        await engine.stop()
        await engine.stop()

        assert not engine.is_running
