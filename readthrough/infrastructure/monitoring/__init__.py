"""
Monitoring Infrastructure Module

Components:
-----------
- **latency.py**: bounded latency sample buffers and percentiles
- **window.py**: the current measurement window and derived stats
- **key_metrics.py**: per-key entries and the bounded key table
- **persistence.py**: historical rollups, weighted merge, repositories
- **metrics_engine.py**: recording, readers, persistence loop
- **prometheus_exporter.py**: optional prometheus-client mirror
"""

from readthrough.infrastructure.monitoring.key_metrics import AccessMetadata, KeyMetricsTable
from readthrough.infrastructure.monitoring.metrics_engine import MetricsEngine
from readthrough.infrastructure.monitoring.persistence import (
    HistoricalMetricsRecord,
    InMemoryMetricsRepository,
    KeyMetricsRecord,
    StorageMetricsRepository,
    period_id,
)
from readthrough.infrastructure.monitoring.prometheus_exporter import PrometheusExporter

__all__ = [
    "AccessMetadata",
    "KeyMetricsTable",
    "MetricsEngine",
    "HistoricalMetricsRecord",
    "KeyMetricsRecord",
    "InMemoryMetricsRepository",
    "StorageMetricsRepository",
    "PrometheusExporter",
    "period_id",
]
