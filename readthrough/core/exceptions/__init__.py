"""
Exception Module

Structured exception hierarchy for the read-through caching layer.

Module Structure:
-----------------
- **base.py**: CachingBaseError base class + ConfigurationError
- **cache.py**: Storage adapter and cache handle exceptions
- **metrics.py**: Metrics engine exceptions

Producer and hook exceptions are never wrapped: they reach the caller unchanged.

Usage:
------
```python
from readthrough.core.exceptions import StorageError, CacheConnectionError
```
"""

# Base exception
from readthrough.core.exceptions.base import CachingBaseError, ConfigurationError

# Cache exceptions
from readthrough.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    SerializationError,
    StorageError,
)

# Metrics exceptions
from readthrough.core.exceptions.metrics import MetricsError, MetricsPersistenceError

__all__ = [
    # Base
    "CachingBaseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "StorageError",
    "CacheConnectionError",
    "CacheKeyError",
    "SerializationError",
    # Metrics
    "MetricsError",
    "MetricsPersistenceError",
]
