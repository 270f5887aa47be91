"""
Key Generator

Turns an arbitrary input plus an optional template and call context into a
stable cache key.

Base key rules (first match wins):
1. An input carrying a ``cache_key`` attribute or mapping entry: used verbatim
2. A string: used verbatim (no re-hashing)
3. A query that is not read-only: no key, the call must not be cached
4. A read-only query: digest of its canonical form
5. A request: digest of method, path, params, query and data; the default
   template additionally folds in tenant, user and locale
6. Anything else: digest of its canonical form

Identity placeholders resolve from the explicit context, then the request, then
the ambient call context, then the fixed defaults. A disabled awareness flag
pins its placeholder to the default. Key derivation never raises.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from readthrough.caching.canonical import digest
from readthrough.caching.models import KeySpec
from readthrough.caching.runtime_config import RuntimeConfig, RuntimeConfigManager
from readthrough.caching.templates import argument_values, expand_template
from readthrough.core.config.constants import (
    DEFAULT_LOCALE,
    DEFAULT_REQUEST_TEMPLATE,
    DEFAULT_TENANT,
    DEFAULT_USER,
)
from readthrough.core.context import get_call_context
from readthrough.core.interfaces.host import QueryLike, RequestLike
from readthrough.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass(frozen=True)
class KeyContext:
    """Explicit context for one key derivation; unset fields fall back to the ambient context."""

    tenant: str | None = None
    user: str | None = None
    locale: str | None = None
    args: Sequence[Any] = field(default_factory=tuple)
    function_name: str | None = None
    base_key: str | None = None


def _explicit_cache_key(input: Any) -> str | None:
    if isinstance(input, Mapping):
        value = input.get("cache_key")
    else:
        value = getattr(input, "cache_key", None)
    return value if isinstance(value, str) and value else None


class KeyGenerator:
    """
    Derives cache keys for one cache instance.

    The awareness flags are read from the runtime configuration manager on
    every call, so toggles take effect without re-creating the generator.
    """

    def __init__(self, runtime_config: RuntimeConfigManager | None = None, key_prefix: str = ""):
        self._runtime_config = runtime_config
        self._key_prefix = key_prefix

    @property
    def _flags(self) -> RuntimeConfig:
        return self._runtime_config.current if self._runtime_config else RuntimeConfig()

    def create_key(
        self,
        input: Any,
        context: KeyContext | None = None,
        template: KeySpec | Mapping[str, Any] | str | None = None,
    ) -> str | None:
        """
        Derive the key for ``input``.

        Args:
            input: String, object, query-like or request-like input
            context: Explicit identity and positional arguments
            template: KeySpec, mapping or template string

        Returns:
            The key, or None when the input must not be cached
        """
        try:
            spec = KeySpec.coerce(template)
        except TypeError:
            log_stage(logger, "KEY", "Ignoring unsupported key spec", level="debug", spec_type=type(template).__name__)
            spec = KeySpec()
        context = context or KeyContext()

        if spec.value:
            return self._wrap(spec, spec.value)

        base = self._base_key(input, context)
        if base is None:
            log_stage(logger, "KEY", "Input is not cacheable", level="debug", input_type=type(input).__name__)
            return None

        pattern = spec.template
        if pattern is None and isinstance(input, RequestLike) and _explicit_cache_key(input) is None:
            pattern = DEFAULT_REQUEST_TEMPLATE
        if pattern is None:
            return self._wrap(spec, base)

        values = self.placeholder_values(context, request=input if isinstance(input, RequestLike) else None)
        values["hash"] = base
        key = expand_template(pattern, values)
        return self._wrap(spec, key)

    def placeholder_values(self, context: KeyContext | None = None, request: Any = None) -> dict[str, str]:
        """
        Values of every placeholder except ``{hash}``.

        Shared with the tag resolver so key and tag templates agree.
        """
        context = context or KeyContext()
        ambient = get_call_context()
        flags = self._flags

        def _resolve(name: str, default: str, aware: bool) -> str:
            if not aware:
                return default
            for source in (getattr(context, name), getattr(request, name, None), getattr(ambient, name)):
                if source:
                    return str(source)
            return default

        values = {
            "tenant": _resolve("tenant", DEFAULT_TENANT, flags.tenant_aware),
            "user": _resolve("user", DEFAULT_USER, flags.user_aware),
            "locale": _resolve("locale", DEFAULT_LOCALE, flags.locale_aware),
            "function_name": context.function_name or "",
            "base_key": context.base_key or "",
        }
        values.update(argument_values(context.args))
        return values

    def _base_key(self, input: Any, context: KeyContext) -> str | None:
        if input is None:
            return digest(list(context.args))
        explicit = _explicit_cache_key(input)
        if explicit is not None:
            return explicit
        if isinstance(input, str):
            return input
        if isinstance(input, QueryLike):
            try:
                if not input.is_read_only():
                    return None
                return digest(input.to_canonical())
            except Exception as e:
                log_stage(logger, "KEY", "Query canonicalization failed", level="debug", error=str(e))
                return None
        if isinstance(input, RequestLike):
            return digest(
                {
                    "method": input.method,
                    "path": input.path,
                    "params": input.params,
                    "query": input.query,
                    "data": input.data,
                }
            )
        return digest(input)

    def _wrap(self, spec: KeySpec, key: str) -> str:
        return f"{self._key_prefix}{spec.prefix}{key}{spec.suffix}"
