"""Interval scheduler with single-flight protection."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class CheckScheduler:
    """
    Run ``check`` once at startup and then every ``interval_seconds``.

    Each tick is spawned as its own task, so a check that outlives the
    interval makes the following ticks find the scheduler RUNNING; those
    ticks are dropped, never queued. Exceptions raised by ``check`` are
    logged and the scheduler returns to IDLE.
    """

    def __init__(self, check: Callable[[], Awaitable[Any]], interval_seconds: float):
        self.check = check
        self.interval_seconds = interval_seconds
        self.state = SchedulerState.IDLE
        self._loop_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()

    async def tick(self) -> bool:
        """
        Run one scheduled check unless one is already running.

        Returns:
            True if the check ran, False if the tick was dropped
        """
        if self.state is SchedulerState.RUNNING:
            logger.info("scheduled_check_skipped", reason="already_running")
            return False

        self.state = SchedulerState.RUNNING
        try:
            await self.check()
        except Exception as e:  # noqa: BLE001
            logger.error(
                "scheduled_check_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
        finally:
            self.state = SchedulerState.IDLE
        return True

    async def start(self) -> None:
        """Fire the initial check immediately and start the interval loop."""
        if self._loop_task and not self._loop_task.done():
            return
        self._loop_task = asyncio.create_task(self._run(), name="check-scheduler")
        logger.info("scheduler_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop ticking and wait for an in-flight check to finish."""
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)
        logger.info("scheduler_stopped")

    def set_interval(self, interval_seconds: float) -> None:
        """Change the interval; applies from the next sleep."""
        self.interval_seconds = interval_seconds
        logger.info("scheduler_interval_changed", interval_seconds=interval_seconds)

    def on_config_updated(self, key: str, value: Any) -> None:
        """ConfigManager subscriber for scheduler.check_interval_minutes."""
        if key == "scheduler.check_interval_minutes":
            self.set_interval(value * 60)

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick(), name="scheduled-check")
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _run(self) -> None:
        while True:
            self._spawn_tick()
            await asyncio.sleep(self.interval_seconds)
