"""
Bounded Latency Samples

Ring buffer of latency samples (milliseconds) for one outcome. Percentiles
are computed by sorting on read; once the buffer is full the oldest samples
are evicted first.
"""

import statistics
from collections import deque
from collections.abc import Iterable
from typing import Any


class LatencySamples:
    """Capped latency sample buffer."""

    def __init__(self, max_samples: int, samples: Iterable[float] = ()):
        self._samples: deque[float] = deque(samples, maxlen=max_samples)

    def add(self, latency_ms: float) -> None:
        self._samples.append(float(latency_ms))

    def extend(self, other: "LatencySamples") -> None:
        self._samples.extend(other._samples)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def max_samples(self) -> int:
        return self._samples.maxlen or 0

    def values(self) -> list[float]:
        return list(self._samples)

    def mean(self) -> float:
        return statistics.fmean(self._samples) if self._samples else 0.0

    def minimum(self) -> float:
        return min(self._samples) if self._samples else 0.0

    def maximum(self) -> float:
        return max(self._samples) if self._samples else 0.0

    def percentile(self, pct: float) -> float:
        """Nearest-rank percentile (``pct`` in 0..100) of the retained samples."""
        if not self._samples:
            return 0.0
        ordered = sorted(self._samples)
        index = min(len(ordered) - 1, int(len(ordered) * pct / 100))
        return ordered[index]

    def summary(self, prefix: str) -> dict[str, Any]:
        """
        Statistics of the buffer as ``{avg,p95,p99,min,max}_{prefix}_latency`` fields.

        Example:
            samples.summary("hit") -> {"avg_hit_latency": 1.2, "p95_hit_latency": 2.0, ...}
        """
        return {
            f"avg_{prefix}_latency": round(self.mean(), 3),
            f"p95_{prefix}_latency": round(self.percentile(95), 3),
            f"p99_{prefix}_latency": round(self.percentile(99), 3),
            f"min_{prefix}_latency": round(self.minimum(), 3),
            f"max_{prefix}_latency": round(self.maximum(), 3),
        }
