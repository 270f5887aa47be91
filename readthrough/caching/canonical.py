"""
Canonical Serialization and Digests

Deterministic identity for arbitrary inputs:
- Mappings are serialized with sorted keys
- Sets are serialized as sorted lists
- Dataclasses, pydantic models, slotted objects and objects with
  ``to_canonical()`` are reduced to plain data first
- The digest is SHA-256 over the orjson bytes (fixed width, 64 hex chars)

The output never depends on process state (memory addresses, hash seeds or
the clock), so keys are stable across restarts.
"""

import hashlib
from collections.abc import Mapping
from typing import Any

import orjson

_CANONICAL_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        slots = klass.__dict__.get("__slots__", ())
        for name in (slots,) if isinstance(slots, str) else slots:
            if name not in ("__dict__", "__weakref__") and not name.startswith("_") and name not in names:
                names.append(name)
    return names


def _default(obj: Any) -> Any:
    """orjson fallback for types it does not serialize natively."""
    if isinstance(obj, (set, frozenset)):
        return sorted(canonical_bytes(item).decode() for item in obj)
    to_canonical = getattr(obj, "to_canonical", None)
    if callable(to_canonical):
        return to_canonical()
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump(mode="json")
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, bytes):
        return obj.hex()
    cls = type(obj)
    slots = _slot_names(cls)
    if hasattr(obj, "__dict__") or slots:
        state = {k: v for k, v in getattr(obj, "__dict__", {}).items() if not k.startswith("_")}
        state.update((name, getattr(obj, name)) for name in slots if hasattr(obj, name))
        return state
    if cls.__str__ is object.__str__ and cls.__repr__ is object.__repr__:
        # The default repr carries the memory address
        return cls.__qualname__
    return f"{cls.__qualname__}:{obj}"


def canonical_bytes(data: Any) -> bytes:
    """Serialize ``data`` deterministically."""
    return orjson.dumps(data, default=_default, option=_CANONICAL_OPTIONS)


def digest(data: Any) -> str:
    """Fixed-width SHA-256 hex digest of the canonical form of ``data``."""
    try:
        payload = canonical_bytes(data)
    except orjson.JSONEncodeError:
        # Out-of-range integers or reference cycles
        payload = repr(data).encode()
    return hashlib.sha256(payload).hexdigest()


def serialize_argument(arg: Any) -> str:
    """
    Render one positional argument for an ``{args[n]}`` placeholder.

    Scalars are stringified, sequences are rendered element-wise as
    ``[a,b]`` and anything structured is replaced by its digest.
    """
    if arg is None:
        return "null"
    if isinstance(arg, bool):
        return "true" if arg else "false"
    if isinstance(arg, str):
        return arg
    if isinstance(arg, (int, float)):
        return str(arg)
    if isinstance(arg, (list, tuple)):
        return "[" + ",".join(serialize_argument(item) for item in arg) + "]"
    return digest(arg)
