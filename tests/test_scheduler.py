import asyncio

import pytest

from blackjackpro.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_runs_in_due_order():
    scheduler = ManualScheduler()
    calls = []
    scheduler.call_later(2.0, calls.append, "late")
    scheduler.call_later(0.0, calls.append, "now")
    scheduler.call_later(1.0, calls.append, "soon")
    scheduler.call_later(0.0, calls.append, "now-2")
    assert scheduler.run_until_idle() == 4
    assert calls == ["now", "now-2", "soon", "late"]
    assert scheduler.now == 2.0


def test_cancelled_task_never_runs():
    scheduler = ManualScheduler()
    calls = []
    handle = scheduler.call_later(1.0, calls.append, "x")
    handle.cancel()
    scheduler.run_until_idle()
    assert calls == []
    assert scheduler.pending == 0


def test_advance_runs_periodic_tasks_within_window():
    scheduler = ManualScheduler()
    ticks = []
    handle = scheduler.call_every(2.0, lambda: ticks.append(scheduler.now))
    scheduler.advance(5.0)
    assert ticks == [2.0, 4.0]
    assert scheduler.now == 5.0
    # periodic work alone never keeps the scheduler busy
    assert scheduler.run_until_idle() == 0
    handle.cancel()
    scheduler.advance(10.0)
    assert ticks == [2.0, 4.0]


def test_run_until_idle_detects_loops():
    scheduler = ManualScheduler()

    def again():
        scheduler.call_later(0.0, again)

    scheduler.call_later(0.0, again)
    with pytest.raises(RuntimeError):
        scheduler.run_until_idle(max_tasks=50)


def test_non_positive_interval_rejected():
    with pytest.raises(ValueError):
        ManualScheduler().call_every(0, lambda: None)


def test_asyncio_scheduler_runs_callbacks():
    async def main():
        scheduler = AsyncioScheduler(asyncio.get_running_loop())
        calls = []
        scheduler.call_later(0.01, calls.append, "once")
        handle = scheduler.call_every(0.01, lambda: calls.append("tick"))
        await asyncio.sleep(0.08)
        handle.cancel()
        return calls

    calls = asyncio.run(main())
    assert calls.count("once") == 1
    assert "tick" in calls
