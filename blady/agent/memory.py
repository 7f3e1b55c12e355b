"""Global memory: a single plaintext file shared by every mode of the agent."""

import asyncio
from pathlib import Path

from loguru import logger

from blady.utils.helpers import atomic_write_text, ensure_dir

MEMORY_FILENAME = "memories.txt"


class MemoryStore:
    """
    Reads and writes `memories.txt` under the workspace.

    Writes are serialized through an asyncio.Lock; reads are plain file reads
    (an overwrite goes through os.replace, so a reader sees either version).
    """

    def __init__(self, workspace: Path):
        self.workspace = workspace
        self.memory_file = workspace / MEMORY_FILENAME
        self._lock = asyncio.Lock()

    def read(self) -> str:
        if self.memory_file.exists():
            return self.memory_file.read_text(encoding="utf-8")
        return ""

    async def update(self, content: str) -> None:
        """Replace the whole memory text."""
        async with self._lock:
            ensure_dir(self.workspace)
            atomic_write_text(self.memory_file, content)
        logger.info(f"Memories updated ({len(content)} chars)")

    async def append(self, content: str) -> None:
        """Append a line (newline-separated from any existing text)."""
        async with self._lock:
            existing = self.read()
            if existing and not existing.endswith("\n"):
                existing += "\n"
            ensure_dir(self.workspace)
            atomic_write_text(self.memory_file, existing + content)
        logger.info("Memories appended")
