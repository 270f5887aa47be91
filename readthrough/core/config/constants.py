"""
System Constants and Enumerations

This module defines constants and enumerations shared by the caching core,
the storage adapters and the metrics engine.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for defaults and reserved key prefixes
- Type-safe enums instead of stringly-typed operation names
"""

from enum import Enum

# ============================================================================
# Enumerations
# ============================================================================


class DirectOperation(str, Enum):
    """Operations of the direct key-value facade that expose hook points."""

    SET = "SET"
    GET = "GET"
    DELETE = "DELETE"
    CLEAR = "CLEAR"


class HookPhase(str, Enum):
    """When a hook runs relative to the storage call."""

    BEFORE = "before"
    AFTER = "after"


class OperationType(str, Enum):
    """
    Counting domain of a recorded operation.

    READ_THROUGH operations carry hit/miss semantics and latency samples;
    BASIC operations are native direct calls and are counted only.
    """

    READ_THROUGH = "READ_THROUGH"
    BASIC = "BASIC"


class ProducerKind(str, Enum):
    """Closed set of producer variants the orchestrator accepts."""

    FUNCTION = "Function"
    QUERY = "Query"
    REMOTE_CALL = "RemoteCall"


class MetricsPeriod(str, Enum):
    """Historical rollup granularity."""

    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


class LatencyOutcome(str, Enum):
    """Latency sample buckets."""

    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DELETE = "delete"


# ============================================================================
# Key / Tag Derivation Defaults
# ============================================================================

DEFAULT_TENANT = "global"
DEFAULT_USER = "anonymous"
DEFAULT_LOCALE = "en"

# Default composition for request-like inputs
DEFAULT_REQUEST_TEMPLATE = "{tenant}:{user}:{locale}:{hash}"

DEFAULT_TAG_SEPARATOR = ":"
ARGUMENT_SEPARATOR = ":"

# HTTP methods whose remote calls are never cached
NON_CACHEABLE_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})

# ============================================================================
# Reserved Key Prefixes
# ============================================================================
# Keys with these prefixes are written by the core itself and are hidden
# from iteration and administrative listing.

TAG_INDEX_KEY_PREFIX = "__tags__:"
RUNTIME_CONFIG_KEY_PREFIX = "__config__:"
METRICS_KEY_PREFIX = "__metrics__:"

RESERVED_KEY_PREFIXES = (TAG_INDEX_KEY_PREFIX, RUNTIME_CONFIG_KEY_PREFIX, METRICS_KEY_PREFIX)

# ============================================================================
# Metrics Defaults
# ============================================================================

DEFAULT_MEMORY_MAX_SIZE = 10000

MAX_LATENCY_SAMPLES = 2000
MAX_KEY_LATENCY_SAMPLES = 100
MAX_TRACKED_KEYS = 1000
PERSISTENCE_INTERVAL_SECONDS = 10.0
