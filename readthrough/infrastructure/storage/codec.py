"""
Value Codec

orjson encoding shared by the storage adapters. Non-string mapping keys are
allowed, so envelopes holding integer-keyed payloads round-trip as JSON.
"""

from typing import Any

import orjson

from readthrough.core.exceptions import SerializationError

_ENCODE_OPTIONS = orjson.OPT_NON_STR_KEYS


def encode(value: Any) -> bytes:
    """
    Encode a value for storage.

    Raises:
        SerializationError: If orjson cannot serialize the value
    """
    try:
        return orjson.dumps(value, option=_ENCODE_OPTIONS)
    except TypeError as e:
        raise SerializationError.from_exception(
            e, message=f"Value is not serializable: {e}", value_type=type(value).__name__
        )


def decode(payload: bytes | str | None) -> Any:
    """
    Decode a stored payload; None stays None.

    Raises:
        SerializationError: If the payload is not valid JSON
    """
    if payload is None:
        return None
    try:
        return orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise SerializationError.from_exception(e, message=f"Stored payload is not valid JSON: {e}")
