"""
Ambient Call Context

The host application binds tenant, user, locale and call parameters once per
request; key derivation, tag resolution and key metrics read them from here
when the caller does not pass an explicit context.

Context variables make the binding safe across interleaved asyncio tasks:
every task sees the context that was active when it was created.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class CallContext:
    """Identity and parameters of the call currently being served."""

    tenant: str | None = None
    user: str | None = None
    locale: str | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def merged(self, **overrides: Any) -> "CallContext":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_EMPTY_CONTEXT = CallContext()

call_context_var: ContextVar[CallContext | None] = ContextVar("call_context", default=None)


def get_call_context() -> CallContext:
    """Get the ambient call context (an empty context when none is bound)."""
    return call_context_var.get() or _EMPTY_CONTEXT


def set_call_context(context: CallContext) -> Token:
    """Bind a call context; returns the token needed to restore the previous one."""
    return call_context_var.set(context)


def reset_call_context(token: Token) -> None:
    """Restore the call context that was active before ``set_call_context``."""
    call_context_var.reset(token)


@contextmanager
def call_context(
    tenant: str | None = None,
    user: str | None = None,
    locale: str | None = None,
    params: Mapping[str, Any] | None = None,
) -> Iterator[CallContext]:
    """
    Bind a call context for the duration of a ``with`` block.

    Usage:
        with call_context(tenant="t1", user="alice"):
            await cache.rt.exec("orders", load_orders, ["open"])
    """
    context = CallContext(tenant=tenant, user=user, locale=locale, params=dict(params or {}))
    token = set_call_context(context)
    try:
        yield context
    finally:
        reset_call_context(token)
