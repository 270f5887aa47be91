"""
Prometheus Exporter

Optional mirror of the metrics engine into prometheus-client collectors.

Each cache instance owns its own CollectorRegistry, so several instances (and
test runs) never collide on metric names in the global registry. Exposition
is left to the host: ``render()`` returns the text format payload.
"""

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Latency buckets in seconds: sub-millisecond hits up to multi-second producers
LATENCY_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class PrometheusExporter:
    """Counters and a latency histogram labelled by cache name."""

    def __init__(self, cache_name: str, registry: CollectorRegistry | None = None):
        self.cache_name = cache_name
        self.registry = registry or CollectorRegistry()

        self._hits = Counter(
            "readthrough_cache_hits_total", "Read-through cache hits", ["cache"], registry=self.registry
        )
        self._misses = Counter(
            "readthrough_cache_misses_total", "Read-through cache misses", ["cache"], registry=self.registry
        )
        self._errors = Counter(
            "readthrough_cache_errors_total", "Read-through storage errors", ["cache"], registry=self.registry
        )
        self._native_ops = Counter(
            "readthrough_native_operations_total",
            "Direct key-value operations",
            ["cache", "operation"],
            registry=self.registry,
        )
        self._native_errors = Counter(
            "readthrough_native_errors_total", "Direct key-value errors", ["cache"], registry=self.registry
        )
        self._latency = Histogram(
            "readthrough_latency_seconds",
            "Read-through latency by outcome",
            ["cache", "outcome"],
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )

    def record_hit(self, latency_ms: float) -> None:
        self._hits.labels(cache=self.cache_name).inc()
        self._latency.labels(cache=self.cache_name, outcome="hit").observe(latency_ms / 1000)

    def record_miss(self, latency_ms: float) -> None:
        self._misses.labels(cache=self.cache_name).inc()
        self._latency.labels(cache=self.cache_name, outcome="miss").observe(latency_ms / 1000)

    def record_latency(self, outcome: str, latency_ms: float) -> None:
        self._latency.labels(cache=self.cache_name, outcome=outcome).observe(latency_ms / 1000)

    def record_error(self) -> None:
        self._errors.labels(cache=self.cache_name).inc()

    def record_native(self, operation: str) -> None:
        self._native_ops.labels(cache=self.cache_name, operation=operation).inc()

    def record_native_error(self) -> None:
        self._native_errors.labels(cache=self.cache_name).inc()

    def render(self) -> bytes:
        """Metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST
