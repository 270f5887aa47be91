"""
Placeholder Template Grammar

Shared by key templates and tag templates:

    {tenant} {user} {locale} {hash} {function_name} {base_key} {args[n]}

Substitution runs left to right in a single pass, so substituted values are
never re-expanded. A placeholder without a value resolves to an empty string;
expansion never raises.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from readthrough.caching.canonical import serialize_argument
from readthrough.core.config.constants import ARGUMENT_SEPARATOR

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*(?:\[\d+\])?)\}")

# Accepted spellings for the function placeholders
_ALIASES = {
    "functionName": "function_name",
    "baseKey": "base_key",
}


def argument_values(args: Sequence[Any] | None) -> dict[str, str]:
    """Placeholder values ``args[0]``, ``args[1]``, ... for positional arguments."""
    return {f"args[{index}]": serialize_argument(arg) for index, arg in enumerate(args or ())}


def expand_template(template: str, values: Mapping[str, str | None]) -> str:
    """
    Substitute every placeholder in ``template`` from ``values``.

    Args:
        template: Pattern such as ``"{tenant}:orders:{args[0]}"``
        values: Placeholder name to replacement; None or missing yields ""

    Returns:
        The expanded string
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        value = values.get(_ALIASES.get(name, name))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def argument_template(base: str, arg_count: int) -> str:
    """Default key template for a call with positional arguments: ``{hash}:{args[0]}:...``."""
    if arg_count == 0:
        return base
    return ARGUMENT_SEPARATOR.join([base] + [f"{{args[{index}]}}" for index in range(arg_count)])
