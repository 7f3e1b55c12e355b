"""Behavior store: one JSON file per enabled behavior. Disabling removes the file."""

import json
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from loguru import logger

from blady.errors import BehaviorNotFoundError, StoreIOError
from blady.utils.helpers import atomic_write_text, dump_json, ensure_dir
from blady.utils.id_counter import IdCounter

STATUS_ENABLED = "enabled"
STATUS_DISABLED = "disabled"


@dataclass
class Behavior:
    """A standing instruction bound to a contact."""
    id: int
    contact: str
    name: str  # Template name under behavior_templates/ (without extension)
    comments: str = ""
    status: str = STATUS_ENABLED
    timestamp: int = 0  # Unix seconds of creation

    @property
    def enabled(self) -> bool:
        return self.status == STATUS_ENABLED

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Behavior":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["id"] = int(kwargs["id"])
        kwargs.setdefault("contact", "")
        kwargs.setdefault("name", "")
        # Absent status means disabled
        kwargs.setdefault("status", STATUS_DISABLED)
        return cls(**kwargs)


class BehaviorStore:
    """Enable/disable behaviors and list the active ones per contact."""

    def __init__(self, behaviors_dir: Path, templates_dir: Path | None = None):
        self.behaviors_dir = behaviors_dir
        self.templates_dir = templates_dir
        self._counter = IdCounter(behaviors_dir)

    def _path(self, behavior_id: int) -> Path:
        return self.behaviors_dir / f"{behavior_id}.json"

    def enable(self, contact: str, name: str, comments: str = "") -> Behavior:
        behavior = Behavior(
            id=self._counter.next_id(),
            contact=contact,
            name=name,
            comments=comments,
            status=STATUS_ENABLED,
            timestamp=int(time.time()),
        )
        ensure_dir(self.behaviors_dir)
        try:
            atomic_write_text(self._path(behavior.id), dump_json(behavior.to_dict()))
        except OSError as e:
            raise StoreIOError(f"failed to write behavior {behavior.id}: {e}") from e
        logger.info(f"[BehaviorStore] Enabled behavior {behavior.id}: {name} for {contact}")
        return behavior

    def disable(self, behavior_id: int) -> None:
        path = self._path(behavior_id)
        if not path.exists():
            raise BehaviorNotFoundError(behavior_id)
        try:
            path.unlink()
        except OSError as e:
            raise StoreIOError(f"failed to remove behavior {behavior_id}: {e}") from e
        logger.info(f"[BehaviorStore] Disabled (removed) behavior {behavior_id}")

    def _iter_records(self):
        if not self.behaviors_dir.exists():
            return
        for path in sorted(self.behaviors_dir.iterdir()):
            if not path.is_file() or path.suffix != ".json":
                continue
            try:
                yield Behavior.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"[BehaviorStore] Skipping unreadable behavior file {path.name}: {e}")

    def active_for(self, contact: str) -> list[Behavior]:
        return sorted((b for b in self._iter_records() if b.enabled and b.contact == contact), key=lambda b: b.id)

    def all_active(self) -> list[Behavior]:
        return sorted((b for b in self._iter_records() if b.enabled), key=lambda b: b.id)

    # ========== Templates ==========

    def available_templates(self) -> list[str]:
        """Names of the instruction templates that can be enabled."""
        if not self.templates_dir or not self.templates_dir.exists():
            return []
        return sorted(
            p.stem for p in self.templates_dir.iterdir()
            if p.is_file() and p.suffix in (".txt", ".md") and not p.name.startswith("__")
        )

    def template_exists(self, name: str) -> bool:
        if not self.templates_dir:
            return True
        return name in self.available_templates()

    def load_template(self, name: str) -> str:
        """Instruction text of a template ('' when missing)."""
        if not self.templates_dir:
            return ""
        for suffix in (".txt", ".md"):
            path = self.templates_dir / f"{name}{suffix}"
            if path.exists():
                return path.read_text(encoding="utf-8")
        return ""
