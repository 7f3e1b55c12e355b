"""Tests for the SQLite chat history."""

import pytest

from blady.history.store import FIRST_PASS_LIMIT, HistoryStore

CHAT = "34600111222@s.whatsapp.net"


@pytest.fixture
def history(tmp_path):
    store = HistoryStore(tmp_path / "history.db")
    yield store
    store.close()


def test_save_is_idempotent(history):
    assert history.save_message("m1", CHAT, CHAT, "hello", 100, False) is True
    assert history.save_message("m1", CHAT, CHAT, "hello again", 101, False) is False
    assert history.count() == 1


def test_recent_messages_oldest_first(history):
    history.save_message("m1", CHAT, CHAT, "hi", 100, False)
    history.save_message("m2", CHAT, "Me", "hello!", 101, True)
    history.save_message("m3", CHAT, CHAT, "table for two?", 102, False)
    history.save_message("x1", "other@s.whatsapp.net", "other", "unrelated", 103, False)
    assert history.get_recent_messages(CHAT, 9) == ["User: hi", "Me: hello!", "User: table for two?"]
    assert history.get_recent_messages(CHAT, 2) == ["Me: hello!", "User: table for two?"]


def test_messages_since_watermark(history):
    history.save_message("m1", CHAT, CHAT, "one", 100, False)
    history.save_message("m2", CHAT, "Me", "mine", 105, True)
    history.save_message("m3", CHAT, CHAT, "two", 110, False)
    history.save_message("m4", CHAT, CHAT, "three", 120, False)

    lines, watermark = history.get_messages_since(CHAT, 100)
    assert lines == ["User: two", "User: three"]
    assert watermark == 120

    assert history.get_messages_since(CHAT, 120) == ([], 120)


def test_first_pass_is_capped(history):
    for i in range(FIRST_PASS_LIMIT + 5):
        history.save_message(f"m{i}", CHAT, CHAT, f"msg {i}", 1000 + i, False)
    lines, watermark = history.get_messages_since(CHAT, 0)
    assert len(lines) == FIRST_PASS_LIMIT
    assert lines[-1] == f"User: msg {FIRST_PASS_LIMIT + 4}"
    assert watermark == 1000 + FIRST_PASS_LIMIT + 4


def test_in_memory_store():
    store = HistoryStore()
    store.save_message("m1", CHAT, CHAT, "hi", 1, False)
    assert store.get_recent_messages(CHAT) == ["User: hi"]
