#!/usr/bin/env python3
"""
Task Scheduler Module

Delayed and periodic task scheduling for the session keeper, behind one
small interface so the state machine can run against the real event loop
in production and against a virtual clock in tests.

Scheduler API (both implementations):
    now() -> float                          epoch seconds
    call_later(delay, callback, *args)      one-shot, returns TimerHandle
    call_every(interval, callback, *args)   periodic, returns TimerHandle
    spawn(callback, *args)                  run as soon as possible
    cancel(handle) -> bool

Callbacks may be plain functions or coroutine functions. Scheduling model is
single-threaded and cooperative: a callback body runs to completion between
suspension points, and nothing here starts OS threads.
"""

import asyncio
import heapq
import inspect
import itertools
import logging
import time
from typing import Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class TimerHandle:
    """Identifier for a scheduled task. Cancelling is idempotent."""

    def __init__(self, name: str, interval: Optional[float] = None):
        self.name = name
        self.interval = interval
        self.cancelled = False
        self.done = False
        self._loop_handle: Optional[asyncio.TimerHandle] = None

    @property
    def periodic(self) -> bool:
        return self.interval is not None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.done)

    def __repr__(self) -> str:
        kind = f"every {self.interval}s" if self.periodic else "once"
        state = "active" if self.active else ("cancelled" if self.cancelled else "done")
        return f"<TimerHandle {self.name} {kind} {state}>"


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or getattr(callback, "__name__", repr(callback))


class AsyncioTaskScheduler:
    """
    Scheduler backed by the running asyncio event loop.

    Must be used from inside the loop. Coroutine callbacks are wrapped in
    tasks; task failures are logged so they never disappear silently.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        handle = TimerHandle(_callback_name(callback))
        self._arm(handle, delay, callback, args)
        return handle

    def call_every(self, interval: float, callback: Callable, *args) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"Periodic interval must be positive, got {interval}")
        handle = TimerHandle(_callback_name(callback), interval=interval)
        self._arm(handle, interval, callback, args)
        return handle

    def spawn(self, callback: Callable, *args) -> TimerHandle:
        return self.call_later(0, callback, *args)

    def cancel(self, handle: Optional[TimerHandle]) -> bool:
        if handle is None or not handle.active:
            return False
        handle.cancelled = True
        if handle._loop_handle is not None:
            handle._loop_handle.cancel()
            handle._loop_handle = None
        return True

    async def shutdown(self):
        """Wait for callback tasks that are still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _arm(self, handle: TimerHandle, delay: float, callback: Callable, args: tuple):
        handle._loop_handle = self.loop.call_later(max(0.0, delay), self._fire, handle, callback, args)

    def _fire(self, handle: TimerHandle, callback: Callable, args: tuple):
        if handle.cancelled:
            return
        if handle.periodic:
            self._arm(handle, handle.interval, callback, args)
        else:
            handle._loop_handle = None
            handle.done = True

        try:
            result = callback(*args)
        except Exception as e:
            logger.error(f"Scheduled callback {handle.name} failed: {e}", exc_info=True)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self.loop)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled task failed: {exc}", exc_info=exc)


class VirtualTaskScheduler:
    """
    Scheduler over a virtual clock.

    Nothing runs until advance() or run_pending() is awaited; due callbacks
    then run in due-time order and coroutine callbacks are awaited inline, so
    tests observe every state transition without wall-clock delays.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = float(start)
        self._queue: List[tuple] = []
        self._seq = itertools.count()
        self._active: Dict[int, TimerHandle] = {}
        self.cancel_count = 0

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        handle = TimerHandle(_callback_name(callback))
        self._push(handle, max(0.0, delay), callback, args)
        return handle

    def call_every(self, interval: float, callback: Callable, *args) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"Periodic interval must be positive, got {interval}")
        handle = TimerHandle(_callback_name(callback), interval=interval)
        self._push(handle, interval, callback, args)
        return handle

    def spawn(self, callback: Callable, *args) -> TimerHandle:
        return self.call_later(0, callback, *args)

    def cancel(self, handle: Optional[TimerHandle]) -> bool:
        if handle is None or not handle.active:
            return False
        handle.cancelled = True
        self._active.pop(id(handle), None)
        self.cancel_count += 1
        return True

    def active_handles(self) -> List[TimerHandle]:
        return list(self._active.values())

    def active_periodic_handles(self) -> List[TimerHandle]:
        return [h for h in self._active.values() if h.periodic]

    async def run_pending(self):
        """Run everything due at the current virtual time."""
        await self.advance(0)

    async def advance(self, seconds: float):
        """Move the clock forward, running callbacks as they come due."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, args = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            if handle.periodic:
                self._push(handle, handle.interval, callback, args)
            else:
                handle.done = True
                self._active.pop(id(handle), None)

            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Scheduled callback {handle.name} failed: {e}", exc_info=True)
        self._now = target

    def _push(self, handle: TimerHandle, delay: float, callback: Callable, args: tuple):
        self._active[id(handle)] = handle
        heapq.heappush(self._queue, (self._now + delay, next(self._seq), handle, callback, args))


class TimerRegistry:
    """
    Named timer handles owned by one manager instance.

    At most one active handle exists per name: scheduling a name cancels the
    handle previously registered under it.
    """

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._handles: Dict[str, TimerHandle] = {}

    def schedule(self, name: str, handle: TimerHandle) -> TimerHandle:
        self.cancel(name)
        self._handles[name] = handle
        return handle

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        return self._scheduler.cancel(handle)

    def cancel_all(self) -> int:
        """Cancel every registered handle. Returns how many were active."""
        cancelled = 0
        for name in list(self._handles):
            if self.cancel(name):
                cancelled += 1
        return cancelled

    def get(self, name: str) -> Optional[TimerHandle]:
        return self._handles.get(name)

    def active_names(self) -> List[str]:
        return sorted(name for name, h in self._handles.items() if h.active)

    def __contains__(self, name: str) -> bool:
        handle = self._handles.get(name)
        return handle is not None and handle.active
