"""Owner of the fire-and-forget background units (debounce workers, task kick-offs, workflows)."""

import asyncio
from typing import Any, Coroutine

from loguru import logger


class WorkerPool:
    """
    Spawns background coroutines as asyncio tasks and keeps a reference to
    each one until it finishes, so shutdown and tests can await them.

    Exceptions escaping a worker are logged, never re-raised into the loop.
    """

    def __init__(self, name: str = "workers"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[{self.name}] worker {task.get_name()} failed: {exc}")

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every worker (including ones spawned while waiting) has finished."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            await asyncio.wait(set(self._tasks), timeout=remaining)
            if deadline is not None and loop.time() >= deadline and self._tasks:
                raise asyncio.TimeoutError(f"{self.name}: {len(self._tasks)} workers still running")

    async def shutdown(self) -> None:
        """Cancel every running worker and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"[{self.name}] stopped {len(tasks)} workers")
