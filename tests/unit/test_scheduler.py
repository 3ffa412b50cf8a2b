"""Unit tests for CheckScheduler single-flight behaviour."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.callwatch.monitor.scheduler import CheckScheduler, SchedulerState


@pytest.mark.asyncio
async def test_tick_runs_check_and_returns_to_idle():
    check = AsyncMock()
    scheduler = CheckScheduler(check, interval_seconds=60)

    assert await scheduler.tick() is True

    check.assert_awaited_once()
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_overlapping_tick_is_dropped():
    release = asyncio.Event()
    calls = 0

    async def slow_check():
        nonlocal calls
        calls += 1
        await release.wait()

    scheduler = CheckScheduler(slow_check, interval_seconds=60)

    first = asyncio.create_task(scheduler.tick())
    await asyncio.sleep(0)
    assert scheduler.state is SchedulerState.RUNNING

    assert await scheduler.tick() is False

    release.set()
    assert await first is True
    assert calls == 1
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_error_is_contained_and_next_tick_runs():
    check = AsyncMock(side_effect=[RuntimeError("boom"), None])
    scheduler = CheckScheduler(check, interval_seconds=60)

    assert await scheduler.tick() is True
    assert scheduler.state is SchedulerState.IDLE
    assert await scheduler.tick() is True
    assert check.await_count == 2


@pytest.mark.asyncio
async def test_start_runs_initial_check_immediately():
    ran = asyncio.Event()

    async def check():
        ran.set()

    scheduler = CheckScheduler(check, interval_seconds=3600)
    await scheduler.start()
    await asyncio.wait_for(ran.wait(), timeout=1)
    await scheduler.stop()


@pytest.mark.asyncio
async def test_loop_drops_ticks_while_check_is_running():
    release = asyncio.Event()
    calls = 0

    async def slow_check():
        nonlocal calls
        calls += 1
        await release.wait()

    scheduler = CheckScheduler(slow_check, interval_seconds=0.01)
    await scheduler.start()
    await asyncio.sleep(0.1)  # several intervals elapse during the first check
    release.set()
    await scheduler.stop()

    assert calls == 1


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_check():
    finished = asyncio.Event()

    async def check():
        await asyncio.sleep(0.05)
        finished.set()

    scheduler = CheckScheduler(check, interval_seconds=3600)
    await scheduler.start()
    await asyncio.sleep(0.01)
    await scheduler.stop()

    assert finished.is_set()


def test_config_update_changes_interval():
    scheduler = CheckScheduler(AsyncMock(), interval_seconds=600)

    scheduler.on_config_updated("scheduler.check_interval_minutes", 2)
    assert scheduler.interval_seconds == 120

    scheduler.on_config_updated("logging.level", "DEBUG")
    assert scheduler.interval_seconds == 120
