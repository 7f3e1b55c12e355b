"""Action registry: name → Action."""

from typing import Any, Iterable

from loguru import logger

from blady.agent.actions.base import Action, ActionSchema
from blady.errors import UnknownActionError


class ActionRegistry:
    """Registry of the actions the LLM may invoke."""

    def __init__(self):
        self._actions: dict[str, Action] = {}

    def register(self, action: Action) -> None:
        if action.name in self._actions:
            logger.warning(f"[Actions] Replacing already registered action '{action.name}'")
        self._actions[action.name] = action

    def get(self, name: str) -> Action | None:
        return self._actions.get(name)

    def validate(self, name: str) -> None:
        if name not in self._actions:
            raise UnknownActionError(name)

    def names(self) -> list[str]:
        return sorted(self._actions)

    def schemas(self, exclude: Iterable[str] = ()) -> list[ActionSchema]:
        """Schemas of every action not in `exclude`, sorted by name."""
        skip = set(exclude)
        return [self._actions[n].schema() for n in sorted(self._actions) if n not in skip]

    def schema_dicts(self, exclude: Iterable[str] = ()) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.schemas(exclude)]

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: str) -> bool:
        return name in self._actions
