"""Clock seam: current time plus periodic and one-shot scheduling."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]


class TaskHandle(Protocol):
    @property
    def cancelled(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


class Clock(Protocol):
    def now(self) -> int:
        """Return the current time in epoch milliseconds."""
        ...

    def every(self, interval_ms: int, callback: Callback) -> TaskHandle:
        ...

    def call_later(self, delay_ms: int, callback: Callback) -> TaskHandle:
        ...


@dataclass(order=True)
class _ScheduledTask:
    due_ms: int
    seq: int
    callback: Callback = field(compare=False)
    interval_ms: Optional[int] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Virtual clock that only moves when told to.

    ``advance`` fires every due callback in time order, setting ``now`` to each
    task's due time before invoking it, so periodic work observes the same
    timestamps it would see in real time.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        self._queue: List[_ScheduledTask] = []
        self._seq = itertools.count()

    def now(self) -> int:
        return self._now

    def every(self, interval_ms: int, callback: Callback) -> _ScheduledTask:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return self._push(self._now + interval_ms, callback, interval_ms)

    def call_later(self, delay_ms: int, callback: Callback) -> _ScheduledTask:
        return self._push(self._now + max(0, int(delay_ms)), callback, None)

    def advance(self, delta_ms: int) -> None:
        if delta_ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        target = self._now + int(delta_ms)
        while self._queue and self._queue[0].due_ms <= target:
            task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self._now = task.due_ms
            task.callback()
            if task.interval_ms is not None and not task.cancelled:
                task.due_ms += task.interval_ms
                task.seq = next(self._seq)
                heapq.heappush(self._queue, task)
        self._now = target

    def pending(self) -> int:
        return sum(1 for task in self._queue if not task.cancelled)

    def _push(self, due_ms: int, callback: Callback, interval_ms: Optional[int]) -> _ScheduledTask:
        task = _ScheduledTask(due_ms=due_ms, seq=next(self._seq), callback=callback, interval_ms=interval_ms)
        heapq.heappush(self._queue, task)
        return task


class _ThreadTask:
    def __init__(self, callback: Callback, delay_s: float, *, repeat: bool) -> None:
        self._callback = callback
        self._delay_s = delay_s
        self._repeat = repeat
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> "_ThreadTask":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self._delay_s):
            try:
                self._callback()
            except Exception:
                LOGGER.exception("Scheduled callback %r failed", self._callback)
            if not self._repeat:
                self._stop.set()


class SystemClock:
    """Wall-clock implementation backed by daemon threads."""

    def now(self) -> int:
        return int(time.time() * 1000)

    def every(self, interval_ms: int, callback: Callback) -> _ThreadTask:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        return _ThreadTask(callback, interval_ms / 1000.0, repeat=True).start()

    def call_later(self, delay_ms: int, callback: Callback) -> _ThreadTask:
        return _ThreadTask(callback, max(0, delay_ms) / 1000.0, repeat=False).start()


__all__ = ["Clock", "ManualClock", "SystemClock", "TaskHandle"]
