"""memory_update / memory_append: the global memory text file."""

from typing import Any

from blady.agent.actions.base import Action, ActionContext
from blady.agent.memory import MemoryStore
from blady.errors import ParseFailureError


class MemoryUpdateAction(Action):
    def __init__(self, memory: MemoryStore):
        self.memory = memory

    @property
    def name(self) -> str:
        return "memory_update"

    @property
    def description(self) -> str:
        return (
            "The **full, updated version** of the Global Memory. Use this ONLY to REWRITE the entire memory. "
            "For adding lines, use memory_append. Global memory IS NOT FOR TASKS."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The full memory text."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        if not isinstance(payload, str):
            raise ParseFailureError("memory_update: content must be a string")
        await self.memory.update(payload)


class MemoryAppendAction(Action):
    def __init__(self, memory: MemoryStore):
        self.memory = memory

    @property
    def name(self) -> str:
        return "memory_append"

    @property
    def description(self) -> str:
        return "Append a new line or lines to the Global Memory. Use this for incremental updates. Global memory IS NOT FOR TASKS."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The text to append."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        if not isinstance(payload, str):
            raise ParseFailureError("memory_append: content must be a string")
        await self.memory.append(payload)
