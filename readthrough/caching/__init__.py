"""
Caching Module

Key and tag derivation, the tag index, producers, the direct key-value facade,
the read-through orchestrator and the cache handle that wires them together.
"""

from .descriptors import Query, Request
from .hooks import ClearEvent, DeleteEvent, DirectHooks, GetEvent, SetEvent
from .key_generator import KeyContext, KeyGenerator
from .models import CacheEntry, KeySpec, ReadThroughOptions, ReadThroughResult, TagSpec
from .producers import FunctionProducer, Producer, QueryProducer, RemoteCallProducer
from .runtime_config import RuntimeConfig, RuntimeConfigManager
from .service import CachingService, close_cache, get_caching_service, init_cache
from .tag_resolver import TagResolver

__all__ = [
    "CacheEntry",
    "CachingService",
    "ClearEvent",
    "DeleteEvent",
    "DirectHooks",
    "FunctionProducer",
    "GetEvent",
    "KeyContext",
    "KeyGenerator",
    "KeySpec",
    "Producer",
    "Query",
    "QueryProducer",
    "ReadThroughOptions",
    "ReadThroughResult",
    "RemoteCallProducer",
    "Request",
    "RuntimeConfig",
    "RuntimeConfigManager",
    "SetEvent",
    "TagResolver",
    "TagSpec",
    "close_cache",
    "get_caching_service",
    "init_cache",
]
