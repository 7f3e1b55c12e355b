"""Plaintext auto-increment counter file (`_last_id`) shared by the task and behavior stores."""

import threading
from pathlib import Path

from blady.errors import StoreIOError
from blady.utils.helpers import atomic_write_text, ensure_dir

COUNTER_FILENAME = "_last_id"

# One lock per counter file, so two stores pointed at the same directory still serialize
_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


class IdCounter:
    """Read-increment-write of `<directory>/_last_id`. The first id handed out is 1."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.path = directory / COUNTER_FILENAME

    def next_id(self) -> int:
        ensure_dir(self.directory)
        with _lock_for(self.path):
            try:
                raw = self.path.read_text(encoding="utf-8").strip() if self.path.exists() else ""
            except OSError as e:
                raise StoreIOError(f"failed to read {self.path}: {e}") from e
            if raw:
                try:
                    next_id = int(raw) + 1
                except ValueError as e:
                    # A corrupted counter must not silently reuse ids
                    raise StoreIOError(f"failed to parse {self.path} ({raw!r})") from e
            else:
                next_id = 1
            try:
                atomic_write_text(self.path, str(next_id))
            except OSError as e:
                raise StoreIOError(f"failed to update {self.path}: {e}") from e
            return next_id
