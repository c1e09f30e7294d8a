"""Callback registry: script closures keyed by trigger.

The registry owns every closure a script hands over, along with its optional
explicit state cell. It never owns compositor state and never decides *when*
to fire: callers pick one of the two dispatch policies.

- `fire_all`: multicast, every closure registered for an equal trigger runs,
  in registration order (key-combos, attach notifications).
- `latest`: policy hooks, only the most recently registered closure of a kind
  is consulted (mode selection, rearrangement).
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from .models import CallbackRuntimeError, TriggerKind

if TYPE_CHECKING:
    import logging

__all__ = ["CallbackHandle", "CallbackRegistry", "StateCell", "Trigger"]

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class Trigger:
    """What a callback is registered for.

    `key` narrows the trigger inside its kind: the KeyCombo of a key binding,
    the node handle of a clickable widget. Hooks and notifications leave it
    unset.
    """

    kind: TriggerKind
    key: Hashable | None = None


@dataclass(frozen=True)
class CallbackHandle:
    """Opaque reference to a registered closure."""

    id: int
    trigger: Trigger = field(compare=False)

    def __repr__(self) -> str:
        return f"<callback #{self.id} {self.trigger.kind}>"


class StateCell(SimpleNamespace):
    """Explicit mutable state of one callback, passed as `state=`."""


@dataclass
class _Entry:
    handle: CallbackHandle
    closure: Callable[..., Any]
    state: StateCell | None
    environment: int


class CallbackRegistry:
    """Stores script closures and invokes them on request."""

    def __init__(self, log: logging.Logger, strict: bool = False) -> None:
        """Initialize the registry.

        Args:
            log: Logger receiving callback errors
            strict: Re-raise callback errors instead of only logging them
        """
        self.log = log
        self.strict = strict
        self.environment = 0
        self._entries: dict[int, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: object) -> bool:
        return isinstance(handle, CallbackHandle) and handle.id in self._entries

    def register(self, trigger: Trigger, closure: Callable[..., Any], state: dict[str, Any] | None = None) -> CallbackHandle:
        """Register `closure` for `trigger`.

        Args:
            trigger: The trigger descriptor
            closure: Any callable
            state: Initial content of an explicit state cell, passed to the
                closure as the `state` keyword argument on every invocation

        Returns:
            A handle unique for the whole process lifetime
        """
        if not callable(closure):
            msg = f"{closure!r} is not callable"
            raise TypeError(msg)
        handle = CallbackHandle(next(_handle_ids), trigger)
        cell = StateCell(**state) if state is not None else None
        self._entries[handle.id] = _Entry(handle, closure, cell, self.environment)
        self.log.debug("registered %s", handle)
        return handle

    def unregister(self, handle: CallbackHandle) -> bool:
        """Forget `handle`. Returns False if it wasn't registered (anymore)."""
        entry = self._entries.pop(handle.id, None)
        if entry is None:
            return False
        self.log.debug("unregistered %s", handle)
        return True

    def clear(self) -> None:
        """Tear down the current script environment, dropping every closure."""
        self._entries.clear()
        self.environment += 1

    def handles(self, kind: TriggerKind | None = None) -> list[CallbackHandle]:
        """Return the live handles, optionally of a single kind, in registration order."""
        return [e.handle for e in self._entries.values() if kind is None or e.handle.trigger.kind == kind]

    def state_of(self, handle: CallbackHandle) -> StateCell | None:
        """Return the state cell of a live handle."""
        entry = self._entries.get(handle.id)
        return entry.state if entry else None

    def matching(self, trigger: Trigger) -> Iterator[CallbackHandle]:
        """Yield the handles registered for an equal trigger."""
        for entry in list(self._entries.values()):
            if entry.handle.trigger == trigger:
                yield entry.handle

    def latest(self, kind: TriggerKind) -> CallbackHandle | None:
        """Return the most recently registered live handle of `kind`."""
        for entry in reversed(self._entries.values()):
            if entry.handle.trigger.kind == kind:
                return entry.handle
        return None

    def invoke(self, handle: CallbackHandle, *args: Any) -> tuple[bool, Any]:  # noqa: ANN401
        """Run the closure of `handle`.

        Returns:
            (True, return value) on success, (False, None) if the handle is
            gone or the closure raised (the error is logged)
        """
        entry = self._entries.get(handle.id)
        if entry is None or entry.environment != self.environment:
            return (False, None)
        try:
            if entry.state is None:
                result = entry.closure(*args)
            else:
                result = entry.closure(*args, state=entry.state)
        except Exception as e:  # pylint: disable=broad-exception-caught
            error = CallbackRuntimeError(handle, e)
            self.log.exception("Script callback %s failed", handle)
            if self.strict:
                raise error from e
            return (False, None)
        return (True, result)

    def fire_all(self, trigger: Trigger, *args: Any) -> int:  # noqa: ANN401
        """Invoke every closure registered for `trigger`, in registration order.

        A closure unregistered by an earlier one of the same dispatch is skipped.

        Returns:
            The number of closures which were invoked
        """
        count = 0
        for handle in list(self.matching(trigger)):
            if handle not in self:
                continue
            self.invoke(handle, *args)
            count += 1
        return count
