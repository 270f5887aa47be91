"""
Admin Data Contract Models
==========================

Pydantic models for the administrative surface of a cache instance: entry
listing and editing, runtime toggles, live metrics and historical metric
queries. They are transport-agnostic; a host service may serve them over HTTP
or any other channel.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from readthrough.caching.tag_index import is_reserved_key
from readthrough.core.config.constants import MetricsPeriod
from readthrough.infrastructure.monitoring.persistence import HistoricalMetricsRecord, KeyMetricsRecord

# ============================================================================
# ENTRIES
# ============================================================================


class CacheEntryResponse(BaseModel):
    """One stored entry as seen by an operator."""

    key: str = Field(..., description="Cache key")
    value: Any = Field(default=None, description="Stored value")
    timestamp: int = Field(default=0, ge=0, description="Creation time in epoch milliseconds (0 = unknown)")
    ttl: float | None = Field(default=None, description="TTL in seconds the entry was written with")
    tags: list[str] = Field(default_factory=list, description="Tags attached to the entry")


class CacheEntryListResponse(BaseModel):
    cache: str = Field(..., description="Cache instance name")
    count: int = Field(..., ge=0, description="Number of entries returned")
    truncated: bool = Field(default=False, description="True when the limit cut the listing short")
    entries: list[CacheEntryResponse] = Field(default_factory=list)


class SetEntryRequest(BaseModel):
    """Operator write of one entry."""

    key: str = Field(..., min_length=1, description="Cache key")
    value: Any = Field(..., description="Value to store")
    ttl: float | None = Field(default=None, ge=0, description="TTL in seconds (None = cache default)")
    tags: list[str] = Field(default_factory=list, description="Static tags to attach")

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Keys reserved by the caching core cannot be written from the admin surface."""
        if is_reserved_key(v):
            raise ValueError(f"Key is reserved for internal use: {v}")
        return v


class DeleteEntryResponse(BaseModel):
    key: str
    deleted: bool = Field(..., description="True if the key existed")


class DeleteByTagResponse(BaseModel):
    tag: str
    deleted: int = Field(..., ge=0, description="Number of entries removed")


class ClearResponse(BaseModel):
    cache: str
    cleared: bool = True


# ============================================================================
# RUNTIME CONFIGURATION
# ============================================================================


class ToggleRequest(BaseModel):
    enabled: bool = Field(..., description="New value of the toggle")


class RuntimeConfigResponse(BaseModel):
    """Live runtime toggles of a cache instance."""

    cache: str
    metrics_enabled: bool
    key_metrics_enabled: bool
    tenant_aware: bool
    user_aware: bool
    locale_aware: bool


# ============================================================================
# METRICS
# ============================================================================


class CurrentMetricsResponse(BaseModel):
    """
    Live aggregate metrics.

    ``stats`` is None while metrics are disabled, which is distinct from an
    enabled but idle window (all counters zero).
    """

    cache: str
    enabled: bool
    stats: dict[str, Any] | None = None
    persistence: dict[str, Any] = Field(default_factory=dict)


class CurrentKeyMetricsResponse(BaseModel):
    cache: str
    enabled: bool
    keys: dict[str, dict[str, Any]] | None = None


class HistoricalMetricsQuery(BaseModel):
    """Filter for persisted rollups and key records."""

    period: MetricsPeriod = Field(default=MetricsPeriod.HOURLY, description="Rollup granularity")
    start: datetime | None = Field(default=None, description="Inclusive lower bound")
    end: datetime | None = Field(default=None, description="Inclusive upper bound")
    key: str | None = Field(default=None, description="Restrict key records to one key")

    @field_validator("end")
    @classmethod
    def validate_range(cls, v: datetime | None, info) -> datetime | None:
        start = info.data.get("start")
        if v is not None and start is not None and v < start:
            raise ValueError("end must not be before start")
        return v


class HistoricalMetricsResponse(BaseModel):
    cache: str
    period: MetricsPeriod
    records: list[HistoricalMetricsRecord] = Field(default_factory=list)
    key_records: list[KeyMetricsRecord] = Field(default_factory=list)
