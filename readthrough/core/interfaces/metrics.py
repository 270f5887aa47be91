"""
Metrics Repository Protocol

Durable home of historical rollups and cumulative per-key records. The metrics
engine merges into whatever repository it is given; the in-memory and
storage-backed implementations live in infrastructure/monitoring/persistence.py.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from readthrough.infrastructure.monitoring.persistence import (
        HistoricalMetricsRecord,
        KeyMetricsRecord,
    )


@runtime_checkable
class MetricsRepository(Protocol):
    """Protocol for historical metrics storage."""

    async def get_record(self, cache: str, record_id: str) -> "HistoricalMetricsRecord | None":
        """Fetch one rollup by (cache, period id)."""
        ...

    async def put_record(self, record: "HistoricalMetricsRecord") -> None:
        """Create or replace a rollup."""
        ...

    async def list_records(
        self,
        cache: str,
        period: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list["HistoricalMetricsRecord"]:
        """Rollups of one period kind, newest first, filtered by period start."""
        ...

    async def delete_records(self, cache: str) -> None:
        """Delete every rollup of a cache."""
        ...

    async def get_key_record(self, cache: str, key: str) -> "KeyMetricsRecord | None":
        """Fetch the cumulative record of one key."""
        ...

    async def put_key_record(self, record: "KeyMetricsRecord") -> None:
        """Create or replace the cumulative record of one key."""
        ...

    async def list_key_records(
        self,
        cache: str,
        key: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list["KeyMetricsRecord"]:
        """Key records, most recently accessed first, filtered by last access."""
        ...

    async def delete_key_records(self, cache: str) -> None:
        """Delete every key record of a cache."""
        ...
