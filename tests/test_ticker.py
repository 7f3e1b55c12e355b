"""Tests for the scheduled-task ticker."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from blady.agent.ticker import TaskTicker
from blady.tasks.store import TaskStore

CONTACT = "34600111222@s.whatsapp.net"


@pytest.fixture
def tasks(tmp_path):
    return TaskStore(tmp_path / "tasks")


def test_due_task_started_exactly_once(tasks):
    task = tasks.create("Wish happy birthday", CONTACT, "say happy birthday", schedule_datetime="2030-05-01T09:00")
    tasks.confirm(task.id)
    start = MagicMock()
    ticker = TaskTicker(tasks, start)

    assert ticker.tick(now=datetime(2030, 5, 1, 8, 59)) == []
    start.assert_not_called()

    assert ticker.tick(now=datetime(2030, 5, 1, 9, 0)) == [task.id]
    assert ticker.tick(now=datetime(2030, 5, 1, 9, 1)) == []
    start.assert_called_once()
    assert start.call_args[0][0].id == task.id
    assert tasks.load(task.id).schedule_datetime is None


def test_unconfirmed_and_unscheduled_tasks_ignored(tasks):
    tasks.create("later", CONTACT, "x", schedule_datetime="2020-01-01T00:00")  # never confirmed
    plain = tasks.create("now", CONTACT, "x")
    tasks.confirm(plain.id)
    start = MagicMock()
    assert TaskTicker(tasks, start).tick(now=datetime(2030, 1, 1)) == []
    start.assert_not_called()


def test_schedule_due():
    from blady.tasks.types import Task

    assert Task(id=1, objective="x", contact="c").schedule_due()
    task = Task(id=1, objective="x", contact="c", schedule_datetime="2030-01-01T10:00")
    assert not task.schedule_due(datetime(2029, 12, 31))
    assert task.schedule_due(datetime(2030, 1, 1, 10, 0))
