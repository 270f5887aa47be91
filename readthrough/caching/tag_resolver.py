"""
Tag Resolver

Turns declarative tag specs plus a result payload and call parameters into a
deduplicated list of concrete tags.

Spec kinds:
- value:    a static tag
- data:     field(s) of the payload, once per element when the payload is a list
- param:    field(s) of the call parameters
- template: the key placeholder grammar with ``{hash}`` bound to a digest of the payload

Resolution is tolerant: absent fields, None values and malformed specs
contribute no tag and never raise.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from readthrough.caching.canonical import digest
from readthrough.caching.key_generator import KeyContext, KeyGenerator
from readthrough.caching.models import TagSpec
from readthrough.caching.templates import expand_template
from readthrough.core.config.constants import DEFAULT_TAG_SEPARATOR
from readthrough.core.context import get_call_context
from readthrough.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

_MISSING = object()


def _field(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, _MISSING)
    if source is None or isinstance(source, (str, bytes, int, float, bool)):
        return _MISSING
    return getattr(source, name, _MISSING)


def _extract(source: Any, fields: str | tuple[str, ...], separator: str) -> str | None:
    names = (fields,) if isinstance(fields, str) else fields
    parts = []
    for name in names:
        value = _field(source, name)
        if value is _MISSING or value is None or value == "":
            continue
        parts.append(str(value))
    return separator.join(parts) if parts else None


def _is_collection(payload: Any) -> bool:
    return isinstance(payload, Sequence) and not isinstance(payload, (str, bytes, bytearray))


class TagResolver:
    """
    Resolves tag specs for one cache instance.

    Usage:
        resolver = TagResolver(key_generator)
        resolver.resolve_tags([{"data": "ID", "prefix": "book:"}], payload=rows)
    """

    def __init__(self, key_generator: KeyGenerator | None = None):
        self._key_generator = key_generator or KeyGenerator()

    def resolve_tags(
        self,
        specs: Iterable[TagSpec | Mapping[str, Any] | str] | None,
        payload: Any = None,
        params: Mapping[str, Any] | None = None,
        context: KeyContext | None = None,
    ) -> list[str]:
        """
        Resolve every spec and deduplicate the result.

        Args:
            specs: Tag specs (TagSpec, mapping or static string)
            payload: Result the tags describe
            params: Call parameters (defaults to the ambient call parameters)
            context: Identity and arguments for template specs

        Returns:
            Concatenated tags of all specs, duplicates removed, order preserved
        """
        if params is None:
            params = get_call_context().params
        tags: list[str] = []
        for raw in specs or ():
            spec = TagSpec.coerce(raw)
            if spec is None:
                log_stage(logger, "TAG.0", "Skipping malformed tag spec", level="debug", spec_type=type(raw).__name__)
                continue
            tags.extend(self._resolve_one(spec, payload, params, context))
        return list(dict.fromkeys(tags))

    def _resolve_one(
        self,
        spec: TagSpec,
        payload: Any,
        params: Mapping[str, Any],
        context: KeyContext | None,
    ) -> list[str]:
        separator = spec.separator if spec.separator is not None else DEFAULT_TAG_SEPARATOR

        if spec.value:
            return [spec.wrap(spec.value)]

        if spec.template:
            values = self._key_generator.placeholder_values(context)
            values["hash"] = digest(payload)
            expanded = expand_template(spec.template, values)
            return [spec.wrap(expanded)] if expanded else []

        if spec.data:
            items = payload if _is_collection(payload) else [payload]
            tags = []
            for item in items:
                extracted = _extract(item, spec.data, separator)
                if extracted is not None:
                    tags.append(spec.wrap(extracted))
            return tags

        if spec.param:
            extracted = _extract(params, spec.param, separator)
            return [spec.wrap(extracted)] if extracted is not None else []

        return []
