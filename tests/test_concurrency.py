"""Tests for the keyed lock, the worker pool and the conversation scheduler."""

import asyncio

import pytest

from blady.agent.conversations import CancelToken, ConversationScheduler, WorkflowCancelled
from blady.agent.locks import KeyedLock, task_lock_key
from blady.agent.workers import WorkerPool


@pytest.mark.asyncio
async def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("task:1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert not locks.locked("task:1")
    assert len(locks) == 1  # never removed


@pytest.mark.asyncio
async def test_keyed_lock_independent_keys_and_unknown_unlock():
    locks = KeyedLock()
    await locks.lock("a")
    await asyncio.wait_for(locks.lock("b"), timeout=0.1)
    assert locks.locked("a") and locks.locked("b")
    locks.unlock("missing")
    locks.unlock("a")
    locks.unlock("a")  # unheld: no-op
    assert not locks.locked("a")


@pytest.mark.asyncio
async def test_hold_releases_on_error():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")
    assert not locks.locked("k")


def test_task_lock_key():
    assert task_lock_key(7) == "task:7"


@pytest.mark.asyncio
async def test_worker_pool_drain_and_failures_logged():
    pool = WorkerPool("test")
    results = []

    async def ok():
        await asyncio.sleep(0.01)
        results.append(1)

    async def bad():
        raise ValueError("boom")

    pool.spawn(ok())
    pool.spawn(bad())
    await pool.drain(timeout=1)
    assert results == [1]
    assert pool.active == 0


@pytest.mark.asyncio
async def test_worker_pool_shutdown_cancels():
    pool = WorkerPool("test")
    pool.spawn(asyncio.sleep(10))
    assert pool.active == 1
    await pool.shutdown()
    assert pool.active == 0


@pytest.mark.asyncio
async def test_cancel_token():
    token = CancelToken()
    assert not token.cancelled
    token.raise_if_cancelled()
    token.cancel()
    assert token.cancelled
    with pytest.raises(WorkflowCancelled):
        token.raise_if_cancelled()
    await asyncio.wait_for(token.wait(), timeout=0.1)


@pytest.mark.asyncio
async def test_new_start_cancels_previous_run():
    scheduler = ConversationScheduler()
    seen = []

    async def slow(token):
        await asyncio.sleep(0.05)
        token.raise_if_cancelled()
        seen.append("slow")

    async def fast(token):
        seen.append("fast")

    first = scheduler.start("chat", slow)
    second = scheduler.start("chat", fast)
    assert first.token.cancelled
    assert not second.token.cancelled
    assert second.generation > first.generation
    await scheduler.pool.drain(timeout=1)
    assert seen == ["fast"]
    assert scheduler.active("chat") is None


@pytest.mark.asyncio
async def test_superseded_run_does_not_remove_newer_entry():
    scheduler = ConversationScheduler()
    release = asyncio.Event()

    async def ignores_token(token):
        await asyncio.sleep(0)

    async def waits(token):
        await release.wait()

    scheduler.start("chat", ignores_token)
    newer = scheduler.start("chat", waits)
    await asyncio.sleep(0.01)  # first run finishes while the second is still active
    assert scheduler.active("chat") is newer
    release.set()
    await scheduler.wait("chat")
    assert scheduler.active("chat") is None


@pytest.mark.asyncio
async def test_scheduler_cancel():
    scheduler = ConversationScheduler()

    async def waits(token):
        await token.wait()

    run = scheduler.start("chat", waits)
    assert scheduler.cancel("chat")
    await scheduler.wait("chat")
    assert run.token.cancelled
    assert not scheduler.cancel("other")
