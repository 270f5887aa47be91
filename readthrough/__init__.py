"""
readthrough - read-through caching layer with key/tag derivation and metrics.

Usage:
    from readthrough import init_cache

    cache = await init_cache()
    envelope = await cache.rt.exec("orders", load_orders, ["open"], {"ttl": 60})
"""

from readthrough.caching.service import (
    CachingService,
    close_cache,
    get_caching_service,
    init_cache,
)
from readthrough.core.context import CallContext, call_context

__version__ = "1.0.0"

__all__ = [
    "CachingService",
    "CallContext",
    "call_context",
    "close_cache",
    "get_caching_service",
    "init_cache",
]
