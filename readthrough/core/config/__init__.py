"""
Configuration Module

Centralized, type-safe configuration for the read-through caching layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Enums, defaults and reserved key prefixes

Usage:
------
```python
from readthrough.core.config import get_settings
from readthrough.core.config.constants import DirectOperation

settings = get_settings()
samples = settings.metrics.METRICS_MAX_LATENCY_SAMPLES
```

Environment Variables:
---------------------
```bash
CACHE_STORE=redis
CACHE_DEFAULT_TTL=300
METRICS_ENABLED=true
REDIS_HOST=localhost
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from readthrough.core.config.constants import (
    DEFAULT_LOCALE,
    DEFAULT_REQUEST_TEMPLATE,
    DEFAULT_TAG_SEPARATOR,
    DEFAULT_TENANT,
    DEFAULT_USER,
    NON_CACHEABLE_METHODS,
    RESERVED_KEY_PREFIXES,
    DirectOperation,
    HookPhase,
    LatencyOutcome,
    MetricsPeriod,
    OperationType,
    ProducerKind,
)
from readthrough.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "DirectOperation",
    "HookPhase",
    "LatencyOutcome",
    "MetricsPeriod",
    "OperationType",
    "ProducerKind",
    # Defaults
    "DEFAULT_LOCALE",
    "DEFAULT_REQUEST_TEMPLATE",
    "DEFAULT_TAG_SEPARATOR",
    "DEFAULT_TENANT",
    "DEFAULT_USER",
    "NON_CACHEABLE_METHODS",
    "RESERVED_KEY_PREFIXES",
]
