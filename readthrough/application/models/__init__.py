"""
Admin Models Package

Pydantic models of the administrative data contract.
"""

from readthrough.application.models.admin import (
    CacheEntryListResponse,
    CacheEntryResponse,
    ClearResponse,
    CurrentKeyMetricsResponse,
    CurrentMetricsResponse,
    DeleteByTagResponse,
    DeleteEntryResponse,
    HistoricalMetricsQuery,
    HistoricalMetricsResponse,
    RuntimeConfigResponse,
    SetEntryRequest,
    ToggleRequest,
)

__all__ = [
    "CacheEntryListResponse",
    "CacheEntryResponse",
    "ClearResponse",
    "CurrentKeyMetricsResponse",
    "CurrentMetricsResponse",
    "DeleteByTagResponse",
    "DeleteEntryResponse",
    "HistoricalMetricsQuery",
    "HistoricalMetricsResponse",
    "RuntimeConfigResponse",
    "SetEntryRequest",
    "ToggleRequest",
]
