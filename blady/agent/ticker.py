"""Periodic check that starts confirmed tasks whose schedule has come due."""

import asyncio
from datetime import datetime
from typing import Callable

from loguru import logger

from blady.tasks.store import TaskStore
from blady.tasks.types import STATUS_PENDING, Task


class TaskTicker:
    """
    Every `tick_seconds`, each pending task with a due `schedule_datetime`
    has its schedule cleared and is handed to `start_task`. Clearing first
    means a task is started once even if the next tick comes before the
    start completes.
    """

    def __init__(self, tasks: TaskStore, start_task: Callable[[Task], None], tick_seconds: float = 60.0):
        self.tasks = tasks
        self.start_task = start_task
        self.tick_seconds = tick_seconds
        self._running = False

    def tick(self, now: datetime | None = None) -> list[int]:
        """Start every due task. Returns the ids started."""
        now = now or datetime.now()
        started = []
        for task in self.tasks.list_active():
            if task.status != STATUS_PENDING or not task.schedule_datetime:
                continue
            try:
                if not task.schedule_due(now):
                    continue
            except ValueError as e:
                logger.warning(f"[Ticker] Task {task.id} has an invalid schedule {task.schedule_datetime!r}: {e}")
                continue
            self.tasks.clear_schedule(task.id)
            task.schedule_datetime = None
            logger.info(f"[Ticker] Task {task.id} is due; starting")
            self.start_task(task)
            started.append(task.id)
        return started

    async def run(self) -> None:
        self._running = True
        logger.info(f"[Ticker] Started (every {self.tick_seconds:g}s)")
        while self._running:
            try:
                self.tick()
            except Exception:
                logger.exception("[Ticker] Tick failed")
            await asyncio.sleep(self.tick_seconds)

    def stop(self) -> None:
        self._running = False
