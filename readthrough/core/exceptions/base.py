"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.
"""

from typing import Any


class CachingBaseError(Exception):
    """
    Base exception for all caching layer errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Request ID correlation
    - Structured error logging

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise CacheConnectionError(
            "Failed to connect to Redis",
            request_id="abc-123",
            details={"host": "localhost", "port": 6379}
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()  # Create a copy to prevent external modification
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "CachingBaseError":
        """
        Add a suggestion to help users fix the error.

        Args:
            suggestion: Helpful suggestion for resolving the error

        Returns:
            Self (for method chaining)
        """
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "CachingBaseError":
        """
        Add additional context to the error details.

        Args:
            **context: Key-value pairs to add to details

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "CachingBaseError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions with additional context.

        Args:
            exc: Original exception to wrap
            message: Custom message (defaults to original exception message)
            request_id: Request ID for correlation
            **details: Additional context to include

        Example:
            >>> try:
            ...     await client.get(key)
            ... except redis.RedisError as e:
            ...     raise CacheKeyError.from_exception(e, operation="get", key=key)
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


# Configuration exception (kept here as it's fundamental)
class ConfigurationError(CachingBaseError):
    """Raised when configuration is invalid or missing."""
    pass
