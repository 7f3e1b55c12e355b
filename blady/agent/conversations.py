"""At most one active workflow per conversation: a newer start cancels the older run."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from loguru import logger

from blady.agent.workers import WorkerPool


class WorkflowCancelled(Exception):
    """Raised by CancelToken.raise_if_cancelled() inside a superseded workflow."""


class CancelToken:
    """Cooperative cancellation signal handed to a workflow."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WorkflowCancelled()

    async def wait(self) -> None:
        await self._event.wait()


Work = Callable[[CancelToken], Awaitable[None]]


@dataclass
class Run:
    conversation_id: str
    generation: int
    token: CancelToken
    task: asyncio.Task | None = field(default=None, repr=False)


class ConversationScheduler:
    """
    start(conversation_id, work) fires the previous run's token, then launches
    work(token) through the worker pool. The old run is not awaited; it must
    observe its token at its own suspension points.

    Each run carries a generation number and a finished run only removes the
    registry entry when the entry still holds its own generation.
    """

    def __init__(self, pool: WorkerPool | None = None):
        self.pool = pool or WorkerPool("conversations")
        self._runs: dict[str, Run] = {}
        self._generation = 0

    def start(self, conversation_id: str, work: Work) -> Run:
        previous = self._runs.get(conversation_id)
        if previous is not None:
            logger.info(f"[Conversations] Cancelling workflow #{previous.generation} for {conversation_id}")
            previous.token.cancel()
        self._generation += 1
        run = Run(conversation_id=conversation_id, generation=self._generation, token=CancelToken())
        self._runs[conversation_id] = run
        logger.info(f"[Conversations] Starting workflow #{run.generation} for {conversation_id}")
        run.task = self.pool.spawn(self._execute(run, work), name=f"conversation:{conversation_id}#{run.generation}")
        return run

    async def _execute(self, run: Run, work: Work) -> None:
        try:
            await work(run.token)
        except WorkflowCancelled:
            logger.info(f"[Conversations] Workflow #{run.generation} for {run.conversation_id} cancelled")
        finally:
            current = self._runs.get(run.conversation_id)
            if current is not None and current.generation == run.generation:
                del self._runs[run.conversation_id]

    def cancel(self, conversation_id: str) -> bool:
        run = self._runs.get(conversation_id)
        if run is None:
            return False
        run.token.cancel()
        return True

    def active(self, conversation_id: str) -> Run | None:
        return self._runs.get(conversation_id)

    async def wait(self, conversation_id: str) -> None:
        """Wait for the current run of a conversation (if any) to finish."""
        run = self._runs.get(conversation_id)
        if run is not None and run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)
