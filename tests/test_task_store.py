"""Tests for the file-backed task store and its state machine."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from blady.errors import (
    InvalidContactError,
    InvalidStateError,
    ParseFailureError,
    TaskNotFoundError,
)
from blady.tasks.store import TaskStore


@pytest.fixture
def store(tmp_path):
    return TaskStore(tmp_path / "tasks")


def test_create_assigns_sequential_ids_and_persists(store):
    t1 = store.create("Book a table", "111@s.whatsapp.net", "book it")
    t2 = store.create("Buy bread", "222@s.whatsapp.net", "bread")
    assert (t1.id, t2.id) == (1, 2)
    assert t1.status == "unconfirmed"
    assert (store.tasks_dir / "_last_id").read_text() == "2"
    loaded = store.load(1)
    assert loaded.objective == "Book a table"
    assert loaded.contact == "111@s.whatsapp.net"


def test_create_rejects_empty_contact(store):
    with pytest.raises(InvalidContactError):
        store.create("x", "  ", "x")
    assert not (store.tasks_dir / "_last_id").exists()


def test_create_rejects_bad_schedule(store):
    with pytest.raises(ParseFailureError):
        store.create("x", "111@s.whatsapp.net", "x", schedule_datetime="next friday")


def test_concurrent_creates_get_distinct_ids(store):
    with ThreadPoolExecutor(max_workers=8) as pool:
        tasks = list(pool.map(lambda i: store.create(f"t{i}", "111@s.whatsapp.net", ""), range(20)))
    assert sorted(t.id for t in tasks) == list(range(1, 21))


def test_load_missing_and_corrupt(store):
    with pytest.raises(TaskNotFoundError):
        store.load(42)
    store.tasks_dir.mkdir(parents=True, exist_ok=True)
    (store.tasks_dir / "7.json").write_text("{not json")
    with pytest.raises(ParseFailureError):
        store.load(7)


def test_lifecycle_transitions(store):
    task = store.create("x", "111@s.whatsapp.net", "x")
    assert store.confirm_and_get(task.id).status == "pending"
    with pytest.raises(InvalidStateError):
        store.confirm_and_get(task.id)

    store.set_running(task.id)
    store.set_running(task.id)  # already running: no-op
    assert store.load(task.id).status == "running"

    assert store.pause(task.id).status == "paused"
    with pytest.raises(InvalidStateError):
        store.set_running(task.id)
    with pytest.raises(InvalidStateError):
        store.pause(task.id)
    assert store.resume(task.id).status == "running"
    with pytest.raises(InvalidStateError):
        store.resume(task.id)


def test_set_running_requires_pending(store):
    task = store.create("x", "111@s.whatsapp.net", "x")
    with pytest.raises(InvalidStateError):
        store.set_running(task.id)


def test_pause_from_pending(store):
    task = store.create("x", "111@s.whatsapp.net", "x")
    store.confirm(task.id)
    assert store.pause(task.id).status == "paused"


def test_delete_moves_to_archive(store):
    task = store.create("x", "111@s.whatsapp.net", "x")
    store.delete(task.id)
    assert not (store.tasks_dir / "1.json").exists()
    assert json.loads((store.deleted_dir / "1.json").read_text())["id"] == 1
    with pytest.raises(TaskNotFoundError):
        store.delete(task.id)
    assert store.list_active() == []


def test_delete_overwrites_archived_copy(store):
    store.deleted_dir.mkdir(parents=True)
    (store.deleted_dir / "1.json").write_text('{"id": 1, "objective": "old"}')
    store.create("new", "111@s.whatsapp.net", "x")
    store.delete(1)
    assert json.loads((store.deleted_dir / "1.json").read_text())["objective"] == "new"


def test_list_active_skips_sample_and_garbage(store):
    store.create("a", "111@s.whatsapp.net", "x")
    store.create("b", "222@s.whatsapp.net", "x")
    (store.tasks_dir / "0_sample.json").write_text('{"id": 0, "objective": "sample", "status": "pending"}')
    (store.tasks_dir / "99.json").write_text("garbage")
    assert [t.id for t in store.list_active()] == [1, 2]


def test_find_prefers_running_then_lowest_id(store):
    contact = "111@s.whatsapp.net"
    for _ in range(3):
        store.create("x", contact, "x")
    store.confirm(1)
    store.confirm(2)
    store.confirm(3)
    assert store.find_by_contact_or_chat(contact).id == 1
    store.set_running(3)
    assert store.find_by_contact_or_chat(contact).id == 3


def test_find_matches_chat_id_and_ignores_inactive(store):
    task = store.create("x", "111@s.whatsapp.net", "x")
    assert store.find_by_contact_or_chat("111@s.whatsapp.net") is None  # unconfirmed
    store.confirm(task.id)
    store.set_chat_id(task.id, "987654@lid")
    assert store.find_by_contact_or_chat("987654@lid").id == task.id
    store.pause(task.id)
    assert store.find_by_contact_or_chat("987654@lid") is None
    assert store.find_by_contact_or_chat("") is None


def test_metadata_updates(store):
    task = store.create("x", "111@s.whatsapp.net", "x", schedule_datetime="2030-01-01T10:00")
    store.set_processed_timestamp(task.id, 1700000000)
    store.clear_schedule(task.id)
    loaded = store.load(task.id)
    assert loaded.last_processed_timestamp == 1700000000
    assert loaded.schedule_datetime is None
    assert "schedule_datetime" not in json.loads((store.tasks_dir / "1.json").read_text())
