"""Base class for agent actions."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from blady.errors import ParseFailureError

if TYPE_CHECKING:
    from blady.behaviors.store import BehaviorStore
    from blady.tasks.types import Task

SendText = Callable[[str], Awaitable[None]]

BOT_PREFIX = "[Blady] : "


def task_prefix(task_id: int) -> str:
    return f"[Blady][Task {task_id}] : "


@dataclass
class ActionSchema:
    """Name, description and JSON-schema parameters, emitted verbatim to the LLM."""
    name: str
    description: str
    parameters: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass
class ActionContext:
    """What an action sees of the turn that invoked it."""
    context: list[str] = field(default_factory=list)  # Rolling conversation window
    task: "Task | None" = None  # None outside task mode
    behaviors: "BehaviorStore | None" = None
    send_to_contact: SendText | None = None  # Task/behavior counterparty
    tool_outputs: list[str] = field(default_factory=list)  # Fed back into the next LLM turn
    chat_id: str = ""


class Action(ABC):
    """
    Abstract base class for agent actions.

    An action is one command the LLM can put in its {"actions": [...]} list.
    `execute` raises on failure; the agent loop logs the error and moves on to
    the next action.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Action name used in the LLM's `type` field."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for the action's `content`."""
        pass

    @abstractmethod
    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        """
        Run the action.

        Args:
            ctx: Turn context (conversation window, current task, outputs list).
            payload: The decoded `content` value (string, number or object).
        """
        pass

    def schema(self) -> ActionSchema:
        return ActionSchema(name=self.name, description=self.description, parameters=self.parameters)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def payload_text(payload: Any) -> str:
    """String form of a payload: strings unwrapped, everything else re-dumped as JSON."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, ensure_ascii=False)


def payload_object(payload: Any, action: str) -> dict[str, Any]:
    """An object payload, also accepting the object stringified (a frequent LLM slip)."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ParseFailureError(f"{action}: content is not a JSON object: {e}") from e
    if not isinstance(payload, dict):
        raise ParseFailureError(f"{action}: content must be an object, got {type(payload).__name__}")
    return payload


def payload_id(payload: Any, action: str) -> int:
    """An integer id given as a number or a (possibly quoted) string."""
    if isinstance(payload, bool):
        raise ParseFailureError(f"{action}: invalid id {payload!r}")
    if isinstance(payload, int):
        return payload
    if isinstance(payload, str):
        raw = payload.strip().strip('"').strip()
        try:
            return int(raw)
        except ValueError:
            pass
    raise ParseFailureError(f"{action}: invalid id {payload!r}")
