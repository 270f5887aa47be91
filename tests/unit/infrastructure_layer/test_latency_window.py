"""
Unit Tests for Latency Samples and the Metrics Window
"""

import pytest

from readthrough.core.config.constants import LatencyOutcome
from readthrough.infrastructure.monitoring.latency import LatencySamples
from readthrough.infrastructure.monitoring.window import MetricsWindow, WindowCounters, derive_stats


@pytest.mark.unit
class TestLatencySamples:
    def test_percentiles_are_ordered(self):
        samples = LatencySamples(1000, range(1, 101))

        assert samples.percentile(95) == 96
        assert samples.percentile(99) == 100
        assert samples.mean() == 50.5
        assert samples.minimum() <= samples.mean() <= samples.percentile(95) <= samples.percentile(99)
        assert samples.percentile(99) <= samples.maximum()

    def test_oldest_samples_evicted(self):
        samples = LatencySamples(3)
        for value in (1, 2, 3, 4):
            samples.add(value)

        assert samples.values() == [2, 3, 4]

    def test_empty_buffer(self):
        summary = LatencySamples(10).summary("hit")
        assert summary["p99_hit_latency"] == 0.0
        assert summary["avg_hit_latency"] == 0.0


@pytest.mark.unit
class TestMetricsWindow:
    def test_record_counts_and_samples(self):
        window = MetricsWindow(max_samples=10)
        window.record("hits", 2.0, LatencyOutcome.HIT)
        window.record("native_sets")

        assert window.counters.hits == 1
        assert window.counters.native_sets == 1
        assert window.latencies[LatencyOutcome.HIT].values() == [2.0]
        assert not window.is_empty()

    def test_absorb_restores_older_window(self):
        older = MetricsWindow(max_samples=10)
        older.record("misses", 5.0, LatencyOutcome.MISS)
        newer = MetricsWindow(max_samples=10)
        newer.record("misses", 7.0, LatencyOutcome.MISS)

        newer.absorb(older)

        assert newer.counters.misses == 2
        assert newer.latencies[LatencyOutcome.MISS].values() == [5.0, 7.0]
        assert newer.started_at == older.started_at


@pytest.mark.unit
class TestDeriveStats:
    def test_derived_values(self):
        window = MetricsWindow(max_samples=10)
        for _ in range(3):
            window.record("hits", 1.0, LatencyOutcome.HIT)
        window.record("misses", 10.0, LatencyOutcome.MISS)
        window.record("errors")

        stats = derive_stats(window.counters, window.latencies, 2.0)

        assert stats["total_requests"] == 4
        assert stats["hit_ratio"] == 0.75
        assert stats["error_rate"] == 0.25
        assert stats["throughput"] == 2.0
        assert stats["cache_efficiency"] == 10.0
        assert stats["avg_read_through_latency"] == 3.25

    def test_idle_window_has_zero_ratios(self):
        stats = derive_stats(WindowCounters(), MetricsWindow().latencies, 0.0)

        assert stats["hit_ratio"] == 0.0
        assert stats["throughput"] == 0.0
        assert stats["cache_efficiency"] == 0.0
