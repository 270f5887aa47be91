"""
Metrics-Related Exceptions
"""

from readthrough.core.exceptions.base import CachingBaseError


class MetricsError(CachingBaseError):
    """Base exception for metrics engine errors."""
    pass


class MetricsPersistenceError(MetricsError):
    """
    Raised when the current window cannot be merged into historical rollups.

    The unflushed window is kept, so a later flush retries the merge.
    """
    pass
