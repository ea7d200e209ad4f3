from __future__ import annotations

import asyncio

import pytest

from scenie.core.timers import AsyncioScheduler, ManualScheduler, TimerGroup


def test_manual_scheduler_fires_in_due_then_schedule_order() -> None:
    clock = ManualScheduler()
    fired: list[str] = []
    clock.call_later(20, lambda: fired.append("late"))
    clock.call_later(10, lambda: fired.append("first"))
    clock.call_later(10, lambda: fired.append("second"))

    clock.advance(10)
    assert fired == ["first", "second"]
    assert clock.now_ms() == 10
    clock.advance(10)
    assert fired == ["first", "second", "late"]


def test_chained_work_inside_window_fires() -> None:
    clock = ManualScheduler()
    fired: list[float] = []
    clock.call_later(5, lambda: clock.call_later(5, lambda: fired.append(clock.now_ms())))

    clock.advance(10)
    assert fired == [10]


def test_cancel_is_idempotent_and_safe_after_fire() -> None:
    clock = ManualScheduler()
    fired: list[int] = []
    handle = clock.call_later(5, lambda: fired.append(1))
    handle.cancel()
    handle.cancel()
    clock.run_until_idle()
    assert fired == []

    done = clock.call_later(5, lambda: fired.append(2))
    clock.run_until_idle()
    done.cancel()
    assert fired == [2]
    assert done.fired and not done.cancelled


def test_timer_group_cancels_only_its_own_timers() -> None:
    clock = ManualScheduler()
    group = TimerGroup(clock)
    fired: list[str] = []
    group.call_later(10, lambda: fired.append("group"))
    clock.call_later(10, lambda: fired.append("other"))
    assert group.pending_count == 1

    group.cancel_all()
    clock.run_until_idle()
    assert fired == ["other"]
    assert group.pending_count == 0


@pytest.mark.asyncio
async def test_asyncio_scheduler_runs_on_the_loop() -> None:
    scheduler = AsyncioScheduler()
    fired = asyncio.Event()
    cancelled: list[int] = []

    scheduler.call_later(10, fired.set)
    scheduler.call_later(10, lambda: cancelled.append(1)).cancel()

    await asyncio.wait_for(fired.wait(), timeout=1)
    await asyncio.sleep(0.02)
    assert cancelled == []
