"""
Caching Data Model

Plain dataclasses passed between the key generator, tag resolver, the direct
facade and the read-through orchestrator. Callers may pass mappings instead of
these classes; every spec/option type has a ``coerce()`` that accepts both.
"""

import time
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class KeySpec:
    """
    How to derive a key.

    - ``value``: static key, used as-is
    - ``template``: placeholder pattern expanded against the input and context
    - neither: the key is the base key of the input (string or digest)

    ``prefix`` and ``suffix`` wrap whatever the rule produced.
    """

    value: str | None = None
    template: str | None = None
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def coerce(cls, spec: "KeySpec | Mapping[str, Any] | str | None") -> "KeySpec":
        """A bare string is a template; a mapping supplies the fields."""
        if spec is None:
            return cls()
        if isinstance(spec, KeySpec):
            return spec
        if isinstance(spec, str):
            return cls(template=spec)
        if isinstance(spec, Mapping):
            return cls(
                value=spec.get("value"),
                template=spec.get("template"),
                prefix=spec.get("prefix") or "",
                suffix=spec.get("suffix") or "",
            )
        raise TypeError(f"Unsupported key spec: {type(spec).__name__}")

    @property
    def is_empty(self) -> bool:
        return not self.value and not self.template


@dataclass(frozen=True)
class TagSpec:
    """
    Declarative tag rule.

    Exactly one of ``value``, ``template``, ``data`` or ``param`` drives the
    rule (checked in that order). ``data`` and ``param`` name one field or a
    list of fields whose values are joined with ``separator``.
    """

    value: str | None = None
    template: str | None = None
    data: str | tuple[str, ...] | None = None
    param: str | tuple[str, ...] | None = None
    prefix: str = ""
    suffix: str = ""
    separator: str | None = None

    @classmethod
    def coerce(cls, spec: "TagSpec | Mapping[str, Any] | str") -> "TagSpec | None":
        """A bare string is a static tag; malformed specs yield None."""
        if isinstance(spec, TagSpec):
            return spec
        if isinstance(spec, str):
            return cls(value=spec) if spec else None
        if isinstance(spec, Mapping):
            return cls(
                value=spec.get("value"),
                template=spec.get("template"),
                data=_fields(spec.get("data")),
                param=_fields(spec.get("param")),
                prefix=spec.get("prefix") or "",
                suffix=spec.get("suffix") or "",
                separator=spec.get("separator"),
            )
        return None

    def wrap(self, value: str) -> str:
        return f"{self.prefix}{value}{self.suffix}"


def _fields(value: Any) -> str | tuple[str, ...] | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    return str(value)


def now_ms() -> int:
    """Wall-clock timestamp in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    """
    One stored entry.

    The storage adapter holds the envelope form (``to_envelope()``); the core
    rebuilds a CacheEntry from it on read and keeps no copy after a write.
    """

    key: str
    value: Any
    tags: list[str] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)
    ttl: float | None = None

    def to_envelope(self) -> dict[str, Any]:
        return {"value": self.value, "tags": list(self.tags), "timestamp": self.created_at, "ttl": self.ttl}

    @staticmethod
    def is_envelope(stored: Any) -> bool:
        return isinstance(stored, Mapping) and "value" in stored and "timestamp" in stored

    @classmethod
    def from_stored(cls, key: str, stored: Any) -> "CacheEntry":
        """Rebuild an entry; values written by other clients become untagged entries."""
        if cls.is_envelope(stored):
            return cls(
                key=key,
                value=stored["value"],
                tags=list(stored.get("tags") or []),
                created_at=int(stored.get("timestamp") or 0),
                ttl=stored.get("ttl"),
            )
        return cls(key=key, value=stored, tags=[], created_at=0)

    def metadata(self) -> dict[str, Any]:
        """The entry without its value."""
        return {"key": self.key, "tags": list(self.tags), "timestamp": self.created_at, "ttl": self.ttl}


@dataclass
class ReadThroughOptions:
    """
    Options of one orchestrated call.

    Attributes:
        ttl: Seconds to keep the result (None = cache default)
        tags: Tag specs resolved against the produced result
        key: Key spec overriding the default derivation
        detailed: Return the envelope instead of the bare result
        throw_on_errors: Rethrow storage errors (None = instance default)
        params: Call parameters for ``param`` tag specs (defaults to the ambient params)
    """

    ttl: float | None = None
    tags: list[TagSpec | Mapping[str, Any] | str] = field(default_factory=list)
    key: KeySpec | Mapping[str, Any] | str | None = None
    detailed: bool = False
    throw_on_errors: bool | None = None
    params: Mapping[str, Any] | None = None

    @classmethod
    def coerce(cls, options: "ReadThroughOptions | Mapping[str, Any] | None") -> "ReadThroughOptions":
        if options is None:
            return cls()
        if isinstance(options, ReadThroughOptions):
            return options
        if isinstance(options, Mapping):
            return cls(
                ttl=options.get("ttl"),
                tags=list(options.get("tags") or []),
                key=options.get("key"),
                detailed=bool(options.get("detailed", False)),
                throw_on_errors=options.get("throw_on_errors", options.get("throwOnErrors")),
                params=options.get("params"),
            )
        raise TypeError(f"Unsupported options: {type(options).__name__}")

    def describe(self) -> dict[str, Any]:
        """JSON-friendly summary for key metrics metadata."""
        return {
            "ttl": self.ttl,
            "tags": [asdict(t) if isinstance(t, TagSpec) else t for t in self.tags],
            "key": asdict(self.key) if isinstance(self.key, KeySpec) else self.key,
            "detailed": self.detailed,
        }


@dataclass(frozen=True)
class CacheErrorRecord:
    """A tolerated storage failure collected during an orchestrated call."""

    operation: str
    message: str
    error_type: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class CallMetadata:
    """Outcome of an orchestrated call; latency in milliseconds."""

    hit: bool
    latency: float


@dataclass
class ReadThroughResult:
    """Detailed envelope returned by the rich read-through entry points."""

    result: Any
    cache_key: str | None
    metadata: CallMetadata
    cache_errors: list[CacheErrorRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result,
            "cache_key": self.cache_key,
            "metadata": asdict(self.metadata),
            "cache_errors": [error.to_dict() for error in self.cache_errors],
        }
