#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the caching layer with:
- Request ID correlation across interleaved asyncio tasks
- Stage codes for the read-through, direct and metrics flows
- JSON formatting for log aggregation
- Redaction of personal data that may end up in cache keys

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
- Cheap enough to stay on in hot paths at DEBUG level
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from readthrough.core.config.settings import get_settings
from readthrough.core.context import get_call_context

# Context variable for the request correlation id
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_EMAIL_PATTERN = re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b")
_BEARER_PATTERN = re.compile(r"\bBearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE)
_PHONE_PATTERN = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the request id from context to the log event.

    STAGE-L.1: Request ID injection
    """
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_tenant(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the ambient tenant to the log event.

    User ids are never injected.
    """
    tenant = get_call_context().tenant
    if tenant and "tenant" not in event_dict:
        event_dict["tenant"] = tenant
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact PII from log messages.

    STAGE-L.3: PII redaction

    Patterns redacted:
    - Email addresses → [EMAIL]
    - Bearer tokens → [REDACTED]
    - Phone numbers → [PHONE]
    """
    message = event_dict.get("event", "")

    if isinstance(message, str):
        message = _EMAIL_PATTERN.sub("[EMAIL]", message)
        message = _BEARER_PATTERN.sub("[REDACTED]", message)
        message = _PHONE_PATTERN.sub("[PHONE]", message)
        event_dict["event"] = message

    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add log level name to event dict.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    # Use settings if not provided
    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    # Choose renderer based on format
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_request_id,
            add_tenant,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="RT.2")
    """
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    """
    Set the request id in context for the current call chain.

    Args:
        request_id: Correlation id supplied by the host application
    """
    request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    """Get current request id from context."""
    return request_id_ctx.get()


def clear_request_id() -> None:
    """Clear request id from context."""
    request_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., "RT.3", "M.2")
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, "RT.3", "Read-through hit", cache_key="abc123")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=stage, **kwargs)
