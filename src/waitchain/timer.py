"""Cancellable single-shot timers over a swappable scheduling backend.

The engine never touches the event loop directly: every deadline, coalesce
and teardown delay goes through a :class:`TimerBackend`.  Production code
uses :class:`AsyncioTimerBackend`; tests drive a :class:`ManualTimerBackend`
whose clock only moves when told to.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from typing import Any, Protocol


class TimerBackend(Protocol):
    """Clock plus schedule/cancel primitives."""

    def now(self) -> float:
        """Current time in milliseconds."""
        ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Any:
        """Run *callback* after *delay_ms*; return an opaque handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a handle previously returned by :meth:`call_later`."""
        ...


class AsyncioTimerBackend:
    """Schedules callbacks on the running asyncio loop.

    ``now()`` reads ``time.monotonic``, the clock the default event loop uses
    for ``call_later``, so a deadline timer never fires before the elapsed
    time it was armed for.
    """

    def now(self) -> float:
        return time.monotonic() * 1000

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ManualTimerBackend:
    """Deterministic virtual clock.

    Callbacks fire only from :meth:`advance` or :meth:`run_pending`, ordered by
    due time and then by scheduling order.  A callback scheduled while another
    one runs is eligible in the same :meth:`advance` call if it is already due.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._cancelled: set[int] = set()
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> int:
        handle = next(self._seq)
        heapq.heappush(self._queue, (self._now + max(delay_ms, 0), handle, callback))
        return handle

    def cancel(self, handle: int) -> None:
        self._cancelled.add(handle)

    @property
    def pending_count(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for _, handle, _ in self._queue if handle not in self._cancelled)

    def set_time(self, now: float) -> None:
        """Move the clock without firing anything."""
        self._now = now

    def run_pending(self) -> int:
        """Fire everything due at the current time. Returns the number fired."""
        return self.advance(0)

    def advance(self, delay_ms: float) -> int:
        """Move the clock forward by *delay_ms*, firing due callbacks in order."""
        target = self._now + delay_ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, handle, callback = heapq.heappop(self._queue)
            if handle in self._cancelled:
                self._cancelled.discard(handle)
                continue
            self._now = max(self._now, due)
            callback()
            fired += 1
        self._now = target
        return fired


class Timer:
    """Single-shot delayed callback; at most one pending schedule at a time."""

    def __init__(
        self,
        delay_ms: float,
        callback: Callable[[], None],
        backend: TimerBackend,
    ) -> None:
        self.delay_ms = delay_ms
        self.callback = callback
        self._backend = backend
        self._handle: Any = None

    @property
    def is_scheduled(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        if self._handle is None:
            self._handle = self._backend.call_later(self.delay_ms, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._backend.cancel(self._handle)
            self._handle = None

    def reschedule(self) -> None:
        self.cancel()
        self.schedule()

    def _fire(self) -> None:
        self._handle = None
        self.callback()
