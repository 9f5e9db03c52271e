"""
Unit tests for the task schedulers and TimerRegistry.

Run tests with: python -m pytest tests/test_task_scheduler.py -v
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from shared.task_scheduler import AsyncioTaskScheduler, TimerRegistry, VirtualTaskScheduler
from tests.helpers import START_TIME


class TestVirtualTaskScheduler:

    @pytest.mark.asyncio
    async def test_callbacks_run_in_due_order(self, scheduler):
        order = []
        scheduler.call_later(2, order.append, "b")
        scheduler.call_later(1, order.append, "a")
        scheduler.spawn(order.append, "now")

        await scheduler.advance(2)

        assert order == ["now", "a", "b"]
        assert scheduler.now() == START_TIME + 2

    @pytest.mark.asyncio
    async def test_periodic_rearms(self, scheduler):
        func = MagicMock()
        handle = scheduler.call_every(10, func)

        await scheduler.advance(35)

        assert func.call_count == 3
        assert handle.active

    @pytest.mark.asyncio
    async def test_coroutine_callbacks_are_awaited(self, scheduler):
        seen = []

        async def work(value):
            await asyncio.sleep(0)
            seen.append(value)

        scheduler.call_later(1, work, 42)
        await scheduler.advance(1)

        assert seen == [42]

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self, scheduler):
        after = MagicMock()
        scheduler.spawn(MagicMock(side_effect=RuntimeError("boom")))
        scheduler.spawn(after)

        await scheduler.run_pending()

        after.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancel_counts_only_active_handles(self, scheduler):
        fired = scheduler.call_later(0, MagicMock())
        await scheduler.run_pending()

        assert fired.done
        assert scheduler.cancel(fired) is False
        assert scheduler.cancel(None) is False
        assert scheduler.cancel_count == 0

        pending = scheduler.call_later(5, MagicMock())
        assert scheduler.cancel(pending) is True
        assert scheduler.cancel(pending) is False
        assert scheduler.cancel_count == 1

    def test_non_positive_interval_is_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.call_every(0, MagicMock())


class TestAsyncioTaskScheduler:

    @pytest.mark.asyncio
    async def test_call_later_runs_on_loop(self):
        scheduler = AsyncioTaskScheduler()
        done = asyncio.Event()

        handle = scheduler.call_later(0.01, done.set)
        await asyncio.wait_for(done.wait(), timeout=1)

        assert handle.done
        assert not handle.active

    @pytest.mark.asyncio
    async def test_coroutine_callback_becomes_task(self):
        scheduler = AsyncioTaskScheduler()
        seen = []

        async def work():
            seen.append("ran")

        scheduler.spawn(work)
        await asyncio.sleep(0.01)
        await scheduler.shutdown()

        assert seen == ["ran"]

    @pytest.mark.asyncio
    async def test_cancelled_periodic_stops(self):
        scheduler = AsyncioTaskScheduler()
        func = MagicMock()

        handle = scheduler.call_every(0.01, func)
        await asyncio.sleep(0.035)
        scheduler.cancel(handle)
        calls = func.call_count
        await asyncio.sleep(0.03)

        assert calls >= 1
        assert func.call_count == calls


class TestTimerRegistry:

    def test_schedule_replaces_previous_handle(self, scheduler, timers):
        first = timers.schedule("cycle", scheduler.call_every(10, MagicMock()))
        second = timers.schedule("cycle", scheduler.call_every(10, MagicMock()))

        assert first.cancelled
        assert timers.get("cycle") is second
        assert len(scheduler.active_periodic_handles()) == 1

    def test_cancel_all_reports_active_count(self, scheduler, timers):
        timers.schedule("a", scheduler.call_later(1, MagicMock()))
        timers.schedule("b", scheduler.call_every(1, MagicMock()))

        assert timers.cancel_all() == 2
        assert timers.cancel_all() == 0
        assert timers.active_names() == []

    def test_contains_tracks_active_handles(self, scheduler, timers):
        timers.schedule("a", scheduler.call_later(1, MagicMock()))
        assert "a" in timers
        timers.cancel("a")
        assert "a" not in timers
        assert timers.cancel("a") is False
