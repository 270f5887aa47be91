"""
Core Interfaces Module

Protocols (PEP 544) the caching core depends on, enabling dependency injection
and easy mocking.

Components:
-----------
- **storage.py**: StorageAdapter and its optional capabilities
- **host.py**: RequestLike / QueryLike / RemoteService extraction contract
- **metrics.py**: MetricsRepository for historical rollups
"""

from readthrough.core.interfaces.host import QueryLike, RemoteService, RequestLike
from readthrough.core.interfaces.metrics import MetricsRepository
from readthrough.core.interfaces.storage import (
    IterableStorageAdapter,
    ManagedStorageAdapter,
    StorageAdapter,
)

__all__ = [
    # Storage
    "StorageAdapter",
    "IterableStorageAdapter",
    "ManagedStorageAdapter",
    # Host contract
    "RequestLike",
    "QueryLike",
    "RemoteService",
    # Metrics
    "MetricsRepository",
]
