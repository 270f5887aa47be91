"""
Per-Key Metrics

Counters and latency samples scoped to one cache key, under the same counting
rules as the aggregate window, plus descriptive metadata about how the key is
accessed.

Entries live until an explicit clear. Each entry also tracks the delta since
its last flush, so persistence merges only new activity into the cumulative
key record. The table keeps the most active keys (read-through requests plus
native operations) when it grows past its bound.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

from readthrough.core.config.constants import (
    MAX_KEY_LATENCY_SAMPLES,
    MAX_TRACKED_KEYS,
    LatencyOutcome,
    OperationType,
)
from readthrough.infrastructure.monitoring.latency import LatencySamples
from readthrough.infrastructure.monitoring.window import WindowCounters, derive_stats


@dataclass(frozen=True)
class AccessMetadata:
    """
    How a key was accessed.

    Attributes:
        operation_type: READ_THROUGH or BASIC
        data_type: Producer kind (Function, Query, RemoteCall) or "Operation" for direct calls
        operation: Operation name (e.g. "exec", "send", "set")
        source: Name of the originating construct (function, entity, service path)
        tenant / user / locale: Identity of the call
        options: Summary of the read-through options used
    """

    operation_type: OperationType = OperationType.BASIC
    data_type: str = "Operation"
    operation: str | None = None
    source: str | None = None
    tenant: str | None = None
    user: str | None = None
    locale: str | None = None
    options: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["operation_type"] = self.operation_type.value
        return data


@dataclass
class KeyCounters(WindowCounters):
    native_hits: int = 0
    native_misses: int = 0


def _latency_buckets(max_samples: int) -> dict[LatencyOutcome, LatencySamples]:
    return {outcome: LatencySamples(max_samples) for outcome in LatencyOutcome}


@dataclass
class KeyDelta:
    """Activity of one key since its last flush."""

    key: str
    metadata: AccessMetadata
    counters: KeyCounters
    latencies: dict[LatencyOutcome, LatencySamples]
    first_seen: datetime
    last_access: datetime


@dataclass
class KeyMetricsEntry:
    key: str
    max_samples: int = MAX_KEY_LATENCY_SAMPLES
    metadata: AccessMetadata = field(default_factory=AccessMetadata)
    counters: KeyCounters = field(default_factory=KeyCounters)
    latencies: dict[LatencyOutcome, LatencySamples] = field(default_factory=dict)
    first_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_access: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _pending: KeyCounters = field(default_factory=KeyCounters, repr=False)
    _pending_latencies: dict[LatencyOutcome, LatencySamples] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if not self.latencies:
            self.latencies = _latency_buckets(self.max_samples)
        if not self._pending_latencies:
            self._pending_latencies = _latency_buckets(self.max_samples)

    @property
    def activity(self) -> int:
        return self.counters.total_requests + self.counters.total_native_operations

    def touch(self, metadata: AccessMetadata | None) -> None:
        self.last_access = datetime.now(timezone.utc)
        if metadata is None:
            return
        # Keep earlier descriptive fields when the new access leaves them unset
        updates = {f.name: getattr(metadata, f.name) for f in fields(metadata) if getattr(metadata, f.name) is not None}
        self.metadata = replace(self.metadata, **updates)

    def record(self, counter: str, latency_ms: float | None = None, outcome: LatencyOutcome | None = None) -> None:
        for counters in (self.counters, self._pending):
            setattr(counters, counter, getattr(counters, counter) + 1)
        if latency_ms is not None and outcome is not None:
            self.latencies[outcome].add(latency_ms)
            self._pending_latencies[outcome].add(latency_ms)

    def has_pending(self) -> bool:
        return not self._pending.is_empty()

    def drain(self) -> KeyDelta:
        """Hand over the activity since the last flush and start a new delta."""
        delta = KeyDelta(
            key=self.key,
            metadata=self.metadata,
            counters=self._pending,
            latencies=self._pending_latencies,
            first_seen=self.first_seen,
            last_access=self.last_access,
        )
        self._pending = KeyCounters()
        self._pending_latencies = _latency_buckets(self.max_samples)
        return delta

    def restore(self, delta: KeyDelta) -> None:
        """Put back a delta whose flush failed."""
        self._pending.add(delta.counters)
        for outcome, samples in delta.latencies.items():
            merged = LatencySamples(self.max_samples, samples.values())
            merged.extend(self._pending_latencies[outcome])
            self._pending_latencies[outcome] = merged

    def stats(self) -> dict[str, Any]:
        elapsed = (datetime.now(timezone.utc) - self.first_seen).total_seconds()
        stats = derive_stats(self.counters, self.latencies, elapsed)
        stats.update(self.metadata.to_dict())
        stats.update(
            {
                "key": self.key,
                "first_seen": self.first_seen.isoformat(),
                "last_access": self.last_access.isoformat(),
            }
        )
        return stats


class KeyMetricsTable:
    """
    Bounded table of per-key entries.

    Usage:
        table = KeyMetricsTable(max_keys=1000)
        table.entry("orders:open", metadata).record("hits", 1.2, LatencyOutcome.HIT)
    """

    def __init__(self, max_keys: int = MAX_TRACKED_KEYS, max_samples: int = MAX_KEY_LATENCY_SAMPLES):
        self._max_keys = max_keys
        self._max_samples = max_samples
        self._entries: dict[str, KeyMetricsEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> KeyMetricsEntry | None:
        return self._entries.get(key)

    def entry(self, key: str, metadata: AccessMetadata | None = None) -> KeyMetricsEntry:
        """Get or create the entry of ``key`` and mark it accessed."""
        entry = self._entries.get(key)
        if entry is None:
            entry = KeyMetricsEntry(key=key, max_samples=self._max_samples)
            self._entries[key] = entry
        entry.touch(metadata)
        return entry

    def prune(self) -> list[str]:
        """
        Keep the most active keys; ties go to the most recently accessed.

        Returns:
            The keys that were dropped
        """
        if len(self._entries) <= self._max_keys:
            return []
        ranked = sorted(self._entries.values(), key=lambda e: (e.activity, e.last_access), reverse=True)
        dropped = [e.key for e in ranked[self._max_keys :]]
        for key in dropped:
            del self._entries[key]
        return dropped

    def entries(self) -> list[KeyMetricsEntry]:
        return list(self._entries.values())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {key: entry.stats() for key, entry in self._entries.items()}

    def clear(self) -> None:
        self._entries.clear()
