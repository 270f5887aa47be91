"""
Unit Tests for Metrics Persistence

Tests period ids, the weighted merge and both repositories.
"""

from datetime import datetime, timezone

import pytest

from readthrough.core.config.constants import LatencyOutcome, MetricsPeriod
from readthrough.infrastructure.monitoring.latency import LatencySamples
from readthrough.infrastructure.monitoring.persistence import (
    HistoricalMetricsRecord,
    InMemoryMetricsRepository,
    KeyMetricsRecord,
    StorageMetricsRepository,
    WindowSummary,
    merge_min,
    period_id,
    weighted_average,
)

MOMENT = datetime(2025, 3, 9, 14, 5, tzinfo=timezone.utc)


def _summary(hits=0, misses=0, hit_latencies=(), miss_latencies=(), elapsed=1.0):
    latencies = {outcome: LatencySamples(100) for outcome in LatencyOutcome}
    for value in hit_latencies:
        latencies[LatencyOutcome.HIT].add(value)
    for value in miss_latencies:
        latencies[LatencyOutcome.MISS].add(value)
    return WindowSummary.build({"hits": hits, "misses": misses}, latencies, elapsed)


@pytest.mark.unit
class TestPeriodIds:
    @pytest.mark.parametrize(
        "period,expected",
        [
            (MetricsPeriod.HOURLY, "hourly:2025-03-09T14"),
            (MetricsPeriod.DAILY, "daily:2025-03-09"),
            (MetricsPeriod.MONTHLY, "monthly:2025-03"),
        ],
    )
    def test_period_id(self, period, expected):
        assert period_id(period, MOMENT) == expected


@pytest.mark.unit
class TestMergeRules:
    def test_weighted_average(self):
        assert weighted_average(10.0, 1, 20.0, 3) == 17.5
        assert weighted_average(0.0, 0, 0.0, 0) == 0.0

    def test_merge_min_treats_zero_as_unset(self):
        assert merge_min(0.0, 4.0) == 4.0
        assert merge_min(3.0, 0.0) == 3.0
        assert merge_min(3.0, 2.0) == 2.0

    def test_record_merge(self):
        record = HistoricalMetricsRecord.empty("c", MetricsPeriod.HOURLY, MOMENT)

        record = record.merged(_summary(hits=1, misses=1, hit_latencies=[10.0], miss_latencies=[30.0]))
        record = record.merged(_summary(hits=3, hit_latencies=[20.0, 20.0, 20.0]))

        assert record.hits == 4
        assert record.misses == 1
        assert record.avg_hit_latency == 17.5
        assert record.min_hit_latency == 10.0
        assert record.max_hit_latency == 20.0
        assert record.avg_miss_latency == 30.0
        assert record.hit_ratio == 0.8
        assert record.window_seconds == 2.0

    def test_computed_fields_are_dumped(self):
        record = HistoricalMetricsRecord.empty("c", "daily", MOMENT).merged(_summary(hits=2, misses=2))

        dumped = record.model_dump(mode="json")

        assert dumped["total_requests"] == 4
        assert dumped["hit_ratio"] == 0.5


@pytest.mark.unit
class TestRepositories:
    @pytest.fixture(params=["memory", "storage"])
    def repository(self, request, memory_store):
        if request.param == "memory":
            return InMemoryMetricsRepository()
        return StorageMetricsRepository(memory_store)

    @pytest.mark.asyncio
    async def test_records_round_trip(self, repository):
        record = HistoricalMetricsRecord.empty("c", MetricsPeriod.HOURLY, MOMENT).merged(_summary(hits=1))
        await repository.put_record(record)

        fetched = await repository.get_record("c", record.id)

        assert fetched.hits == 1
        assert fetched.period is MetricsPeriod.HOURLY

    @pytest.mark.asyncio
    async def test_list_filters_by_period_and_range(self, repository):
        await repository.put_record(HistoricalMetricsRecord.empty("c", "hourly", MOMENT))
        await repository.put_record(HistoricalMetricsRecord.empty("c", "daily", MOMENT))
        await repository.put_record(HistoricalMetricsRecord.empty("other", "hourly", MOMENT))

        hourly = await repository.list_records("c", "hourly")
        later = await repository.list_records("c", "hourly", start=datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert [r.id for r in hourly] == ["hourly:2025-03-09T14"]
        assert later == []

    @pytest.mark.asyncio
    async def test_key_records(self, repository):
        record = KeyMetricsRecord.empty("c", "orders:open").model_copy(update={"hits": 2, "last_access": MOMENT})
        await repository.put_key_record(record)

        assert (await repository.get_key_record("c", "orders:open")).hits == 2
        assert [r.key for r in await repository.list_key_records("c")] == ["orders:open"]
        assert await repository.list_key_records("c", key="missing") == []

    @pytest.mark.asyncio
    async def test_delete(self, repository):
        await repository.put_record(HistoricalMetricsRecord.empty("c", "hourly", MOMENT))
        await repository.put_key_record(KeyMetricsRecord.empty("c", "k"))

        await repository.delete_records("c")
        await repository.delete_key_records("c")

        assert await repository.list_records("c", "hourly") == []
        assert await repository.get_key_record("c", "k") is None
