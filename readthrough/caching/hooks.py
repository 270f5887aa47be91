"""
Direct Operation Hooks

One typed before/after slot per direct operation (SET, GET, DELETE, CLEAR).
Callbacks receive a mutable event: a ``before`` hook may rewrite the key,
value or ttl the operation will use, an ``after`` hook may rewrite the value
returned to the caller.

A callback that raises aborts the operation and the exception reaches the
caller unchanged. Callbacks run in subscription order and may be sync or async.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from readthrough.core.config.constants import DirectOperation, HookPhase

E = TypeVar("E")

HookCallback = Callable[[E], Awaitable[None] | None]


@dataclass
class SetEvent:
    key: str
    value: Any
    ttl: float | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class GetEvent:
    key: str
    value: Any = None


@dataclass
class DeleteEvent:
    key: str
    deleted: bool = False


@dataclass
class ClearEvent:
    cleared: bool = False


class HookSubscription:
    """Handle returned by ``subscribe``; ``unsubscribe()`` is idempotent."""

    def __init__(self, slot: "HookSlot", callback: Callable):
        self._slot = slot
        self._callback = callback

    def unsubscribe(self) -> None:
        self._slot._remove(self._callback)


class HookSlot(Generic[E]):
    """Callbacks for one (operation, phase) pair."""

    def __init__(self, operation: DirectOperation, phase: HookPhase):
        self.operation = operation
        self.phase = phase
        self._callbacks: list[HookCallback] = []

    def subscribe(self, callback: HookCallback) -> HookSubscription:
        self._callbacks.append(callback)
        return HookSubscription(self, callback)

    def _remove(self, callback: Callable) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def __len__(self) -> int:
        return len(self._callbacks)

    async def fire(self, event: E) -> E:
        for callback in list(self._callbacks):
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        return event


class DirectHooks:
    """
    The closed set of interception points of the direct facade.

    Usage:
        hooks.before_set.subscribe(lambda event: setattr(event, "ttl", 60))
        sub = hooks.after_get.subscribe(audit)
        sub.unsubscribe()
    """

    def __init__(self):
        self.before_set: HookSlot[SetEvent] = HookSlot(DirectOperation.SET, HookPhase.BEFORE)
        self.after_set: HookSlot[SetEvent] = HookSlot(DirectOperation.SET, HookPhase.AFTER)
        self.before_get: HookSlot[GetEvent] = HookSlot(DirectOperation.GET, HookPhase.BEFORE)
        self.after_get: HookSlot[GetEvent] = HookSlot(DirectOperation.GET, HookPhase.AFTER)
        self.before_delete: HookSlot[DeleteEvent] = HookSlot(DirectOperation.DELETE, HookPhase.BEFORE)
        self.after_delete: HookSlot[DeleteEvent] = HookSlot(DirectOperation.DELETE, HookPhase.AFTER)
        self.before_clear: HookSlot[ClearEvent] = HookSlot(DirectOperation.CLEAR, HookPhase.BEFORE)
        self.after_clear: HookSlot[ClearEvent] = HookSlot(DirectOperation.CLEAR, HookPhase.AFTER)

    def slot(self, operation: DirectOperation, phase: HookPhase) -> HookSlot:
        """Look up a slot by enum pair."""
        return getattr(self, f"{phase.value}_{operation.value.lower()}")
