"""Filesystem helpers."""

import json
import os
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    """Create the directory (and parents) if missing; return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """~/.blady (or BLADY_DATA)."""
    raw = os.environ.get("BLADY_DATA", "").strip()
    return ensure_dir(Path(raw).expanduser() if raw else Path.home() / ".blady")


def get_workspace_path(workspace: str | None = None) -> Path:
    """Expanded workspace path, created on first use."""
    path = Path(workspace).expanduser() if workspace else get_data_path() / "workspace"
    return ensure_dir(path)


def atomic_write_text(path: Path, content: str) -> None:
    """Write through a sibling temp file and os.replace, so readers never see half a file."""
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def clean_json(content: str) -> str:
    """Substring from the first '{' to the last '}' (drops code fences and chatter around the object)."""
    content = content.strip()
    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        return content[start:end + 1]
    if content.startswith("```"):
        content = content.removeprefix("```json").removeprefix("```").removesuffix("```")
    return content.strip()
