"""Named asyncio locks (one per task id) created lazily and never removed."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """
    Registry of named mutual-exclusion locks.

    Entries are never deleted: removing one between "look up" and "acquire"
    would let two callers each create a fresh lock and run concurrently. The
    key space is bounded (task ids), so the registry stays small.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _get(self, key: str) -> asyncio.Lock:
        # Single event loop: no await between lookup and insert, so no guard is needed
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def lock(self, key: str) -> None:
        await self._get(key).acquire()

    def unlock(self, key: str) -> None:
        """Release `key`. Unknown or unheld keys are a no-op."""
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            lock.release()

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """`async with locks.hold("task:3"):` acquire and always release."""
        await self.lock(key)
        try:
            yield
        finally:
            self.unlock(key)

    def __len__(self) -> int:
        return len(self._locks)


def task_lock_key(task_id: int) -> str:
    return f"task:{task_id}"
