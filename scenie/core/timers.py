from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

TimerCallback = Callable[[], None]


@dataclass(slots=True, eq=False)
class TimerHandle:
    """A scheduled callback. Cancelling is idempotent and safe after firing."""

    due_ms: float
    callback: TimerCallback
    cancelled: bool = False
    fired: bool = False
    _native: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.pending:
            return
        self.cancelled = True
        if self._native is not None:
            self._native.cancel()

    def fire(self) -> None:
        if not self.pending:
            return
        self.fired = True
        self.callback()


class Scheduler(Protocol):
    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules onto the running asyncio loop (the HTTP service uses this)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self._get_loop().time() * 1000

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        loop = self._get_loop()
        delay_ms = max(0.0, delay_ms)
        handle = TimerHandle(due_ms=loop.time() * 1000 + delay_ms, callback=callback)
        handle._native = loop.call_later(delay_ms / 1000, handle.fire)
        return handle


class ManualScheduler:
    """Virtual clock: nothing fires until `advance()` moves time forward.

    Callbacks due at the same instant fire in the order they were scheduled.
    Callbacks may schedule more work; anything that becomes due inside the
    advanced window fires in the same call.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, TimerHandle]] = []

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(due_ms=self._now + max(0.0, delay_ms), callback=callback)
        heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if h.pending)

    def advance(self, ms: float) -> None:
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self._now = due
            handle.fire()
        self._now = target

    def run_until_idle(self, *, limit_ms: float = 3_600_000) -> None:
        """Fire everything pending, following chains of newly scheduled work."""

        deadline = self._now + limit_ms
        while self._queue and self._queue[0][0] <= deadline:
            self.advance(self._queue[0][0] - self._now)


class TimerGroup:
    """Owner-scoped set of timers that can be cancelled together.

    Each engine schedules through its own group so teardown (or a fresh
    restart) drops every step it still had pending.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handles: list[TimerHandle] = []

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        self._handles = [h for h in self._handles if h.pending]
        handle = self._scheduler.call_later(delay_ms, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for h in self._handles if h.pending)

    def cancel_all(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
