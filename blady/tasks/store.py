"""File-backed task store: one JSON file per task, a `_last_id` counter and a `deleted/` archive.

The store does not lock per task. Flows that read-then-mutate the same task from
several workers (contact message batches, task kick-off, confirm/resume) hold the
KeyedLock for `task:<id>` around their calls.
"""

import json
import os
from pathlib import Path

from loguru import logger

from blady.errors import (
    InvalidContactError,
    InvalidStateError,
    ParseFailureError,
    StoreIOError,
    TaskNotFoundError,
)
from blady.tasks.types import (
    ACTIVE_STATUSES,
    STATUS_PAUSED,
    STATUS_PENDING,
    STATUS_RUNNING,
    STATUS_UNCONFIRMED,
    Task,
    parse_schedule,
)
from blady.utils.helpers import atomic_write_text, dump_json, ensure_dir
from blady.utils.id_counter import IdCounter

SAMPLE_FILENAME = "0_sample.json"


class TaskStore:
    """CRUD and state machine for tasks (unconfirmed → pending → running ⇄ paused)."""

    def __init__(self, tasks_dir: Path):
        self.tasks_dir = tasks_dir
        self.deleted_dir = tasks_dir / "deleted"
        self._counter = IdCounter(tasks_dir)

    def _path(self, task_id: int) -> Path:
        return self.tasks_dir / f"{task_id}.json"

    # ========== Records ==========

    def create(
        self,
        objective: str,
        contact: str,
        original_orders: str,
        schedule_datetime: str | None = None,
    ) -> Task:
        """Create a task in `unconfirmed` with the next id."""
        if not (contact or "").strip():
            raise InvalidContactError("task contact is empty")
        if schedule_datetime:
            try:
                parse_schedule(schedule_datetime)
            except ValueError as e:
                raise ParseFailureError(f"invalid schedule_datetime {schedule_datetime!r}: {e}") from e
        task = Task(
            id=self._counter.next_id(),
            objective=objective,
            contact=contact.strip(),
            original_orders=original_orders,
            status=STATUS_UNCONFIRMED,
            schedule_datetime=(schedule_datetime or None),
        )
        self.save(task)
        logger.info(f"[TaskStore] Created task {task.id}: {task.objective[:60]!r} (contact={task.contact})")
        return task

    def load(self, task_id: int) -> Task:
        path = self._path(task_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TaskNotFoundError(task_id) from None
        except OSError as e:
            raise StoreIOError(f"failed to read task {task_id}: {e}") from e
        try:
            return Task.from_dict(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise ParseFailureError(f"failed to parse task {task_id}: {e}") from e

    def save(self, task: Task) -> None:
        ensure_dir(self.tasks_dir)
        try:
            atomic_write_text(self._path(task.id), dump_json(task.to_dict()))
        except OSError as e:
            raise StoreIOError(f"failed to write task {task.id}: {e}") from e

    def delete(self, task_id: int) -> None:
        """Move the task file to deleted/. An archived file with the same id is overwritten."""
        src = self._path(task_id)
        if not src.exists():
            raise TaskNotFoundError(task_id)
        ensure_dir(self.deleted_dir)
        dst = self.deleted_dir / src.name
        if dst.exists():
            logger.warning(f"[TaskStore] Archive already holds task {task_id}; overwriting it")
        try:
            os.replace(src, dst)
        except OSError as e:
            raise StoreIOError(f"failed to move task {task_id} to deleted: {e}") from e
        logger.info(f"[TaskStore] Deleted task {task_id} (moved to deleted/)")

    # ========== State machine ==========

    def _transition(self, task_id: int, allowed: tuple[str, ...], target: str, expected: str) -> Task:
        task = self.load(task_id)
        if task.status not in allowed:
            raise InvalidStateError(task_id, task.status, expected)
        previous = task.status
        task.status = target
        self.save(task)
        logger.info(f"[TaskStore] Task {task_id}: {previous} -> {target}")
        return task

    def confirm_and_get(self, task_id: int) -> Task:
        return self._transition(task_id, (STATUS_UNCONFIRMED,), STATUS_PENDING, "unconfirmed")

    def confirm(self, task_id: int) -> None:
        self.confirm_and_get(task_id)

    def set_running(self, task_id: int) -> None:
        """pending → running. Already running is a no-op."""
        task = self.load(task_id)
        if task.status == STATUS_RUNNING:
            return
        if task.status != STATUS_PENDING:
            raise InvalidStateError(task_id, task.status, "pending")
        task.status = STATUS_RUNNING
        self.save(task)
        logger.info(f"[TaskStore] Task {task_id} now running")

    def pause(self, task_id: int) -> Task:
        return self._transition(task_id, (STATUS_RUNNING, STATUS_PENDING), STATUS_PAUSED, "running or pending")

    def resume(self, task_id: int) -> Task:
        return self._transition(task_id, (STATUS_PAUSED,), STATUS_RUNNING, "paused")

    # ========== Metadata ==========

    def set_chat_id(self, task_id: int, chat_id: str) -> None:
        task = self.load(task_id)
        old = task.chat_id
        task.chat_id = chat_id
        self.save(task)
        logger.info(f"[TaskStore] Task {task_id} chat id updated: {old!r} -> {chat_id!r}")

    def set_processed_timestamp(self, task_id: int, timestamp: int) -> None:
        task = self.load(task_id)
        task.last_processed_timestamp = int(timestamp)
        self.save(task)

    def clear_schedule(self, task_id: int) -> None:
        task = self.load(task_id)
        task.schedule_datetime = None
        self.save(task)

    # ========== Queries ==========

    def _iter_records(self):
        """Yield every parseable task in the directory (archive and sample excluded)."""
        if not self.tasks_dir.exists():
            return
        for path in sorted(self.tasks_dir.iterdir()):
            if not path.is_file() or path.suffix != ".json" or path.name == SAMPLE_FILENAME:
                continue
            try:
                yield Task.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, TypeError, ValueError) as e:
                logger.warning(f"[TaskStore] Skipping unreadable task file {path.name}: {e}")

    def list_active(self) -> list[Task]:
        """All tasks whose status is unconfirmed, pending, running or paused, ordered by id."""
        return sorted((t for t in self._iter_records() if t.status in ACTIVE_STATUSES), key=lambda t: t.id)

    def find_by_contact_or_chat(self, key: str) -> Task | None:
        """Active (running or pending) task for a contact or chat id.

        When several match, running wins over pending and the lowest id wins
        within the same status.
        """
        if not key:
            return None
        matches = [
            t for t in self._iter_records()
            if (t.contact == key or t.chat_id == key) and t.status in (STATUS_RUNNING, STATUS_PENDING)
        ]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(f"[TaskStore] {len(matches)} active tasks match {key!r}: {[t.id for t in matches]}")
        matches.sort(key=lambda t: (0 if t.status == STATUS_RUNNING else 1, t.id))
        return matches[0]
