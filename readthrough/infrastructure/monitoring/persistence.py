"""
Metrics Persistence

Historical rollups and cumulative key records, the weighted merge that folds a
flushed window into them, and the repositories that store them.

Merge rules:
- counters are summed
- average latencies are weighted by their counters
  (hit by hits, miss by misses, set by sets, delete by deletes, read-through
  by hits + misses): ``new = (old * old_n + window * window_n) / (old_n + window_n)``
- max latencies take the maximum
- min latencies take the minimum, where 0 means "no sample yet"

Derived ratios are pydantic computed fields over the cumulative counters, so
they are recomputed on every read and never drift from them.

Period ids: ``hourly:YYYY-MM-DDTHH``, ``daily:YYYY-MM-DD``, ``monthly:YYYY-MM``
(UTC). Key record id: ``key:{cache}:{key}``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, computed_field

from readthrough.core.config.constants import METRICS_KEY_PREFIX, LatencyOutcome, MetricsPeriod
from readthrough.core.interfaces.storage import StorageAdapter
from readthrough.infrastructure.monitoring.latency import LatencySamples


# Counter that weights each outcome's average latency
_LATENCY_WEIGHTS = {
    LatencyOutcome.HIT: "hits",
    LatencyOutcome.MISS: "misses",
    LatencyOutcome.SET: "sets",
    LatencyOutcome.DELETE: "deletes",
}


# ============================================================================
# Period ids
# ============================================================================


def period_start(period: MetricsPeriod | str, moment: datetime | None = None) -> datetime:
    """Start of the period containing ``moment`` (UTC)."""
    period = MetricsPeriod(period)
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    if period is MetricsPeriod.HOURLY:
        return moment.replace(minute=0, second=0, microsecond=0)
    if period is MetricsPeriod.DAILY:
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def period_id(period: MetricsPeriod | str, moment: datetime | None = None) -> str:
    """
    Rollup id of the period containing ``moment``.

    Example:
        period_id("hourly", datetime(2025, 3, 9, 14, 5, tzinfo=timezone.utc)) -> "hourly:2025-03-09T14"
    """
    period = MetricsPeriod(period)
    start = period_start(period, moment)
    formats = {
        MetricsPeriod.HOURLY: "%Y-%m-%dT%H",
        MetricsPeriod.DAILY: "%Y-%m-%d",
        MetricsPeriod.MONTHLY: "%Y-%m",
    }
    return f"{period.value}:{start.strftime(formats[period])}"


def key_record_id(cache: str, key: str) -> str:
    return f"key:{cache}:{key}"


# ============================================================================
# Window summary
# ============================================================================


@dataclass
class WindowSummary:
    """What a flush merges: counters plus per-outcome latency aggregates."""

    counters: dict[str, int]
    latencies: dict[str, float] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @classmethod
    def build(
        cls,
        counters: dict[str, int],
        latencies: dict[LatencyOutcome, LatencySamples],
        elapsed_seconds: float,
    ) -> "WindowSummary":
        values: dict[str, float] = {}
        for outcome, samples in latencies.items():
            values[f"avg_{outcome.value}_latency"] = samples.mean()
            values[f"min_{outcome.value}_latency"] = samples.minimum()
            values[f"max_{outcome.value}_latency"] = samples.maximum()
        hit, miss = latencies[LatencyOutcome.HIT], latencies[LatencyOutcome.MISS]
        read_through = hit.values() + miss.values()
        values["avg_read_through_latency"] = sum(read_through) / len(read_through) if read_through else 0.0
        return cls(counters=dict(counters), latencies=values, elapsed_seconds=elapsed_seconds)

    def is_empty(self) -> bool:
        return not any(self.counters.values())


def weighted_average(old_avg: float, old_count: int, new_avg: float, new_count: int) -> float:
    total = old_count + new_count
    if total <= 0:
        return 0.0
    return (old_avg * old_count + new_avg * new_count) / total


def merge_min(old: float, new: float) -> float:
    """Minimum where 0 means unset."""
    if not old:
        return new
    if not new:
        return old
    return min(old, new)


# ============================================================================
# Records
# ============================================================================


class MetricsAggregate(BaseModel):
    """Cumulative counters and latency aggregates shared by both record kinds."""

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    sets: int = Field(default=0, ge=0)
    deletes: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    native_sets: int = Field(default=0, ge=0)
    native_gets: int = Field(default=0, ge=0)
    native_deletes: int = Field(default=0, ge=0)
    native_clears: int = Field(default=0, ge=0)
    native_delete_by_tags: int = Field(default=0, ge=0)
    native_errors: int = Field(default=0, ge=0)

    avg_hit_latency: float = 0.0
    min_hit_latency: float = 0.0
    max_hit_latency: float = 0.0
    avg_miss_latency: float = 0.0
    min_miss_latency: float = 0.0
    max_miss_latency: float = 0.0
    avg_set_latency: float = 0.0
    min_set_latency: float = 0.0
    max_set_latency: float = 0.0
    avg_delete_latency: float = 0.0
    min_delete_latency: float = 0.0
    max_delete_latency: float = 0.0
    avg_read_through_latency: float = 0.0

    window_seconds: float = Field(default=0.0, ge=0, description="Measured time folded into the record")
    updated_at: datetime | None = None

    @computed_field
    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @computed_field
    @property
    def total_native_operations(self) -> int:
        return self.native_sets + self.native_gets + self.native_deletes + self.native_clears + self.native_delete_by_tags

    @computed_field
    @property
    def hit_ratio(self) -> float:
        return self.hits / self.total_requests if self.total_requests else 0.0

    @computed_field
    @property
    def error_rate(self) -> float:
        return self.errors / self.total_requests if self.total_requests else 0.0

    @computed_field
    @property
    def throughput(self) -> float:
        return self.total_requests / self.window_seconds if self.window_seconds else 0.0

    @computed_field
    @property
    def cache_efficiency(self) -> float:
        if self.avg_hit_latency > 0 and self.avg_miss_latency > 0:
            return self.avg_miss_latency / self.avg_hit_latency
        return 0.0

    @computed_field
    @property
    def native_throughput(self) -> float:
        return self.total_native_operations / self.window_seconds if self.window_seconds else 0.0

    @computed_field
    @property
    def native_error_rate(self) -> float:
        ops = self.total_native_operations
        return self.native_errors / ops if ops else 0.0

    def merged(self, summary: WindowSummary, **updates: Any):
        """Return a copy with ``summary`` folded in."""
        current = self.model_dump(exclude=set(type(self).model_computed_fields))
        merged: dict[str, Any] = {}

        for outcome, weight_field in _LATENCY_WEIGHTS.items():
            name = outcome.value
            old_n = current.get(weight_field, 0)
            new_n = summary.counters.get(weight_field, 0)
            merged[f"avg_{name}_latency"] = weighted_average(
                current[f"avg_{name}_latency"], old_n, summary.latencies.get(f"avg_{name}_latency", 0.0), new_n
            )
            merged[f"max_{name}_latency"] = max(
                current[f"max_{name}_latency"], summary.latencies.get(f"max_{name}_latency", 0.0)
            )
            merged[f"min_{name}_latency"] = merge_min(
                current[f"min_{name}_latency"], summary.latencies.get(f"min_{name}_latency", 0.0)
            )
        merged["avg_read_through_latency"] = weighted_average(
            current["avg_read_through_latency"],
            current["hits"] + current["misses"],
            summary.latencies.get("avg_read_through_latency", 0.0),
            summary.counters.get("hits", 0) + summary.counters.get("misses", 0),
        )

        for name, value in summary.counters.items():
            if name in current:
                merged[name] = current[name] + value

        merged["window_seconds"] = current["window_seconds"] + summary.elapsed_seconds
        merged["updated_at"] = datetime.now(timezone.utc)
        merged.update(updates)
        return self.model_copy(update=merged)


class HistoricalMetricsRecord(MetricsAggregate):
    """A period-scoped rollup identified by (cache, id)."""

    id: str
    cache: str
    period: MetricsPeriod
    period_start: datetime

    @classmethod
    def empty(cls, cache: str, period: MetricsPeriod | str, moment: datetime | None = None) -> "HistoricalMetricsRecord":
        period = MetricsPeriod(period)
        return cls(
            id=period_id(period, moment),
            cache=cache,
            period=period,
            period_start=period_start(period, moment),
        )


class KeyMetricsRecord(MetricsAggregate):
    """Cumulative metrics of one key across all flushes."""

    id: str
    cache: str
    key: str
    native_hits: int = Field(default=0, ge=0)
    native_misses: int = Field(default=0, ge=0)
    operation_type: str | None = None
    data_type: str | None = None
    operation: str | None = None
    source: str | None = None
    tenant: str | None = None
    user: str | None = None
    locale: str | None = None
    options: dict[str, Any] | None = None
    first_seen: datetime | None = None
    last_access: datetime | None = None

    @classmethod
    def empty(cls, cache: str, key: str) -> "KeyMetricsRecord":
        return cls(id=key_record_id(cache, key), cache=cache, key=key)


def _in_range(moment: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if moment is None:
        return start is None and end is None
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


# ============================================================================
# Repositories
# ============================================================================


class InMemoryMetricsRepository:
    """Process-local repository; the default when no durable store is configured."""

    def __init__(self):
        self._records: dict[tuple[str, str], HistoricalMetricsRecord] = {}
        self._key_records: dict[tuple[str, str], KeyMetricsRecord] = {}

    async def get_record(self, cache: str, record_id: str) -> HistoricalMetricsRecord | None:
        return self._records.get((cache, record_id))

    async def put_record(self, record: HistoricalMetricsRecord) -> None:
        self._records[(record.cache, record.id)] = record

    async def list_records(
        self,
        cache: str,
        period: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoricalMetricsRecord]:
        period = MetricsPeriod(period)
        records = [
            r
            for (c, _), r in self._records.items()
            if c == cache and r.period is period and _in_range(r.period_start, start, end)
        ]
        return sorted(records, key=lambda r: r.period_start, reverse=True)

    async def delete_records(self, cache: str) -> None:
        for ident in [ident for ident in self._records if ident[0] == cache]:
            del self._records[ident]

    async def get_key_record(self, cache: str, key: str) -> KeyMetricsRecord | None:
        return self._key_records.get((cache, key))

    async def put_key_record(self, record: KeyMetricsRecord) -> None:
        self._key_records[(record.cache, record.key)] = record

    async def list_key_records(
        self,
        cache: str,
        key: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[KeyMetricsRecord]:
        records = [
            r
            for (c, k), r in self._key_records.items()
            if c == cache and (key is None or k == key) and _in_range(r.last_access, start, end)
        ]
        return sorted(records, key=lambda r: r.last_access or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    async def delete_key_records(self, cache: str) -> None:
        for ident in [ident for ident in self._key_records if ident[0] == cache]:
            del self._key_records[ident]


class StorageMetricsRepository:
    """
    Repository over any StorageAdapter (e.g. a Redis namespace).

    Records live under reserved ``__metrics__:`` keys, next to one id index per
    cache and record kind, so listing never scans the store.
    """

    def __init__(self, store: StorageAdapter):
        self._store = store

    @staticmethod
    def _record_key(cache: str, record_id: str) -> str:
        return f"{METRICS_KEY_PREFIX}{cache}:{record_id}"

    @staticmethod
    def _key_record_key(cache: str, key: str) -> str:
        return f"{METRICS_KEY_PREFIX}{key_record_id(cache, key)}"

    @staticmethod
    def _index_key(cache: str, kind: str) -> str:
        return f"{METRICS_KEY_PREFIX}{cache}:index:{kind}"

    async def _index(self, cache: str, kind: str) -> list[str]:
        stored = await self._store.get(self._index_key(cache, kind))
        return list(stored) if isinstance(stored, list) else []

    async def _add_to_index(self, cache: str, kind: str, member: str) -> None:
        index = await self._index(cache, kind)
        if member not in index:
            index.append(member)
            await self._store.set(self._index_key(cache, kind), index)

    async def get_record(self, cache: str, record_id: str) -> HistoricalMetricsRecord | None:
        stored = await self._store.get(self._record_key(cache, record_id))
        return HistoricalMetricsRecord.model_validate(stored) if stored else None

    async def put_record(self, record: HistoricalMetricsRecord) -> None:
        await self._store.set(self._record_key(record.cache, record.id), record.model_dump(mode="json"))
        await self._add_to_index(record.cache, "records", record.id)

    async def list_records(
        self,
        cache: str,
        period: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoricalMetricsRecord]:
        prefix = f"{MetricsPeriod(period).value}:"
        records = []
        for record_id in await self._index(cache, "records"):
            if not record_id.startswith(prefix):
                continue
            record = await self.get_record(cache, record_id)
            if record is not None and _in_range(record.period_start, start, end):
                records.append(record)
        return sorted(records, key=lambda r: r.period_start, reverse=True)

    async def delete_records(self, cache: str) -> None:
        for record_id in await self._index(cache, "records"):
            await self._store.delete(self._record_key(cache, record_id))
        await self._store.delete(self._index_key(cache, "records"))

    async def get_key_record(self, cache: str, key: str) -> KeyMetricsRecord | None:
        stored = await self._store.get(self._key_record_key(cache, key))
        return KeyMetricsRecord.model_validate(stored) if stored else None

    async def put_key_record(self, record: KeyMetricsRecord) -> None:
        await self._store.set(self._key_record_key(record.cache, record.key), record.model_dump(mode="json"))
        await self._add_to_index(record.cache, "keys", record.key)

    async def list_key_records(
        self,
        cache: str,
        key: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[KeyMetricsRecord]:
        keys = [key] if key is not None else await self._index(cache, "keys")
        records = []
        for member in keys:
            record = await self.get_key_record(cache, member)
            if record is not None and _in_range(record.last_access, start, end):
                records.append(record)
        return sorted(records, key=lambda r: r.last_access or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    async def delete_key_records(self, cache: str) -> None:
        for member in await self._index(cache, "keys"):
            await self._store.delete(self._key_record_key(cache, member))
        await self._store.delete(self._index_key(cache, "keys"))
