"""
Metrics Window

Counters and latency samples of the current measurement window. The engine
mutates one window in place and swaps in a fresh one after a successful flush
or an explicit clear.

Derived values (hit ratio, throughput, error rate, cache efficiency) are
computed on read by ``derive_stats`` and never stored.
"""

import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from readthrough.core.config.constants import MAX_LATENCY_SAMPLES, LatencyOutcome
from readthrough.infrastructure.monitoring.latency import LatencySamples


@dataclass
class WindowCounters:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0
    native_sets: int = 0
    native_gets: int = 0
    native_deletes: int = 0
    native_clears: int = 0
    native_delete_by_tags: int = 0
    native_errors: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def total_native_operations(self) -> int:
        return self.native_sets + self.native_gets + self.native_deletes + self.native_clears + self.native_delete_by_tags

    def add(self, other: "WindowCounters") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))


@dataclass
class MetricsWindow:
    """The current, unflushed measurement window."""

    max_samples: int = MAX_LATENCY_SAMPLES
    counters: WindowCounters = field(default_factory=WindowCounters)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _started_monotonic: float = field(default_factory=time.monotonic, repr=False)
    latencies: dict[LatencyOutcome, LatencySamples] = field(default_factory=dict)

    def __post_init__(self):
        for outcome in LatencyOutcome:
            self.latencies.setdefault(outcome, LatencySamples(self.max_samples))

    def record(self, counter: str, latency_ms: float | None = None, outcome: LatencyOutcome | None = None) -> None:
        setattr(self.counters, counter, getattr(self.counters, counter) + 1)
        if latency_ms is not None and outcome is not None:
            self.latencies[outcome].add(latency_ms)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started_monotonic

    def is_empty(self) -> bool:
        return self.counters.is_empty()

    def absorb(self, other: "MetricsWindow") -> None:
        """
        Fold an older window back into this one after a failed flush.

        The window start moves back to the older start so throughput stays
        consistent with the restored counters.
        """
        self.counters.add(other.counters)
        for outcome, samples in other.latencies.items():
            merged = LatencySamples(self.max_samples, samples.values())
            merged.extend(self.latencies[outcome])
            self.latencies[outcome] = merged
        if other.started_at < self.started_at:
            self.started_at = other.started_at
            self._started_monotonic = other._started_monotonic


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def derive_stats(
    counters: WindowCounters,
    latencies: dict[LatencyOutcome, LatencySamples],
    elapsed_seconds: float,
) -> dict[str, Any]:
    """
    Counters plus derived metrics of a window or a key entry.

    - hit_ratio = hits / (hits + misses), 0 without requests
    - throughput = total_requests / elapsed seconds
    - error_rate = errors / total_requests
    - cache_efficiency = avg miss latency / avg hit latency, 0 when either side has no samples
    """
    hit, miss = latencies[LatencyOutcome.HIT], latencies[LatencyOutcome.MISS]
    read_through = LatencySamples(hit.max_samples + miss.max_samples, hit.values() + miss.values())
    total = counters.total_requests
    stats: dict[str, Any] = counters.to_dict()
    stats.update(
        {
            "total_requests": total,
            "total_native_operations": counters.total_native_operations,
            "hit_ratio": round(_ratio(counters.hits, total), 4),
            "throughput": round(_ratio(total, elapsed_seconds), 4),
            "error_rate": round(_ratio(counters.errors, total), 4),
            "cache_efficiency": round(_ratio(miss.mean(), hit.mean()), 4) if len(hit) and len(miss) else 0.0,
            "avg_read_through_latency": round(read_through.mean(), 3),
            "native_throughput": round(_ratio(counters.total_native_operations, elapsed_seconds), 4),
            "native_error_rate": round(_ratio(counters.native_errors, counters.total_native_operations), 4),
            "uptime_seconds": round(elapsed_seconds, 3),
        }
    )
    for outcome in LatencyOutcome:
        stats.update(latencies[outcome].summary(outcome.value))
    return stats
