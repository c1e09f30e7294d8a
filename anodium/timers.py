"""Cooperative timer scheduler polled once per host tick."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .models import TriggerKind
from .registry import CallbackHandle, CallbackRegistry, Trigger

if TYPE_CHECKING:
    import logging

__all__ = ["Timer", "TimerScheduler", "monotonic_ms"]


def monotonic_ms() -> int:
    """Return the monotonic clock in milliseconds."""
    return time.monotonic_ns() // 1_000_000


@dataclass
class Timer:
    """A repeating script closure."""

    handle: CallbackHandle
    period_ms: int
    next_fire: int


class TimerScheduler:
    """Fires due timers when polled.

    The closures live in the callback registry, so a script teardown drops
    them together with every other callback.
    """

    def __init__(self, registry: CallbackRegistry, log: logging.Logger, clock: Callable[[], int] = monotonic_ms) -> None:
        self.registry = registry
        self.log = log
        self.clock = clock
        self._timers: dict[CallbackHandle, Timer] = {}

    def __len__(self) -> int:
        return sum(1 for handle in self._timers if handle in self.registry)

    def add_timeout(
        self, period_ms: int, closure: Callable[..., Any], state: dict[str, Any] | None = None, now_ms: int | None = None
    ) -> CallbackHandle:
        """Schedule `closure` every `period_ms` while it returns a truthy value."""
        if period_ms < 0:
            msg = f"negative timer period: {period_ms}"
            raise ValueError(msg)
        handle = self.registry.register(Trigger(TriggerKind.TIMER), closure, state)
        start = self.clock() if now_ms is None else now_ms
        self._timers[handle] = Timer(handle, int(period_ms), start + int(period_ms))
        return handle

    def cancel(self, handle: CallbackHandle) -> bool:
        """Remove a timer. Returns False if it wasn't scheduled."""
        timer = self._timers.pop(handle, None)
        self.registry.unregister(handle)
        return timer is not None

    def clear(self) -> None:
        """Drop every timer (the registry drops the closures)."""
        self._timers.clear()

    def next_deadline(self) -> int | None:
        """Return the earliest next-fire timestamp, if any timer is live."""
        self._prune()
        return min((t.next_fire for t in self._timers.values()), default=None)

    def poll(self, now_ms: int | None = None) -> int:
        """Fire every timer whose deadline elapsed.

        Returns:
            The number of timers fired
        """
        now = self.clock() if now_ms is None else now_ms
        self._prune()
        due = sorted((t for t in self._timers.values() if t.next_fire <= now), key=lambda t: (t.next_fire, t.handle.id))
        fired = 0
        for timer in due:
            if timer.handle not in self.registry:
                self._timers.pop(timer.handle, None)
                continue
            ok, keep_going = self.registry.invoke(timer.handle)
            fired += 1
            if ok and keep_going:
                timer.next_fire = now + timer.period_ms
            else:
                self.log.debug("timer %s stopped", timer.handle)
                self.cancel(timer.handle)
        return fired

    def _prune(self) -> None:
        """Forget timers whose closure was unregistered elsewhere."""
        for handle in [h for h in self._timers if h not in self.registry]:
            del self._timers[handle]
