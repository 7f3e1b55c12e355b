"""Prompt/response transcript files for every LLM call (enabled by agents.defaults.llmLogDir)."""

from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from blady.utils.helpers import ensure_dir

SEPARATOR = "------------------------------------------------"


class LLMTranscriptLog:
    """
    Writes `<iso-time>-<engine>[-<tag>]-prompt.txt` and the matching
    `-response.txt` into a directory.
    """

    def __init__(self, directory: Path, engine: str = "llm"):
        self.directory = directory
        self.engine = engine.replace("/", "_")

    def write(self, messages: list[dict[str, Any]], response: str | None, tag: str = "") -> Path:
        stamp = datetime.now().strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
        base = f"{stamp}-{self.engine}{'-' + tag if tag else ''}"
        ensure_dir(self.directory)
        prompt_path = self.directory / f"{base}-prompt.txt"
        parts = [f"[{m.get('role')}]: {m.get('content')}\n\n{SEPARATOR}\n\n" for m in messages]
        try:
            prompt_path.write_text("".join(parts), encoding="utf-8")
            if response is not None:
                (self.directory / f"{base}-response.txt").write_text(response, encoding="utf-8")
        except OSError as e:
            logger.warning(f"[LLMLog] Failed to write transcript {base}: {e}")
        return prompt_path
