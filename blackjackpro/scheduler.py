"""Delay and timer scheduling used to pace the table.

Pacing carries no game semantics: the table only ever asks for "run this
later", so a :class:`ManualScheduler` can collapse every delay and drive a
round deterministically, while :class:`AsyncioScheduler` gives real timing
inside an event loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Tuple

LOGGER = logging.getLogger(__name__)

Callback = Callable[..., Any]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle: ...

    def call_every(self, interval: float, callback: Callback) -> TimerHandle: ...


@dataclass
class ManualTask:
    due: float
    callback: Callback
    args: Tuple[Any, ...] = ()
    interval: Optional[float] = None
    cancelled: bool = False

    @property
    def periodic(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Virtual-clock scheduler; nothing runs until the test drives it."""

    now: float = 0.0
    _queue: List[Tuple[float, int, ManualTask]] = field(default_factory=list)
    _sequence: "itertools.count[int]" = field(default_factory=itertools.count)

    def call_later(self, delay: float, callback: Callback, *args: Any) -> ManualTask:
        task = ManualTask(due=self.now + max(delay, 0.0), callback=callback, args=args)
        self._push(task)
        return task

    def call_every(self, interval: float, callback: Callback) -> ManualTask:
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = ManualTask(due=self.now + interval, callback=callback, interval=interval)
        self._push(task)
        return task

    def _push(self, task: ManualTask) -> None:
        heapq.heappush(self._queue, (task.due, next(self._sequence), task))

    def _pending_one_shot(self) -> bool:
        return any(not task.cancelled and not task.periodic for _, _, task in self._queue)

    def _run_next(self) -> None:
        due, _, task = heapq.heappop(self._queue)
        if task.cancelled:
            return
        self.now = max(self.now, due)
        if task.periodic:
            task.due = self.now + task.interval
            self._push(task)
        task.callback(*task.args)

    def run_until_idle(self, max_tasks: int = 100_000) -> int:
        """Run one-shot work in due order; periodic timers never keep it alive."""
        executed = 0
        while self._pending_one_shot():
            if executed >= max_tasks:
                raise RuntimeError("Scheduler did not go idle; possible task loop")
            self._run_next()
            executed += 1
        return executed

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running everything due within the window."""
        deadline = self.now + seconds
        executed = 0
        while self._queue and self._queue[0][0] <= deadline:
            self._run_next()
            executed += 1
        self.now = deadline
        return executed

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task in self._queue if not task.cancelled)


class _PeriodicHandle:
    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()


class AsyncioScheduler:
    """Scheduler backed by a running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callback, *args: Any) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0.0), callback, *args)

    def call_every(self, interval: float, callback: Callback) -> _PeriodicHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")

        async def _tick() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    callback()
                except Exception:
                    LOGGER.exception("Periodic task %r failed", callback)

        return _PeriodicHandle(self.loop.create_task(_tick()))


__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "ManualTask",
    "Scheduler",
    "TimerHandle",
]
