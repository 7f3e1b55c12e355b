"""button_response: click an option of the last interactive message in the chat."""

import json
from typing import Any, Awaitable, Callable

from loguru import logger

from blady.agent.actions.base import Action, ActionContext
from blady.agent.actions.messaging import mark_task_running
from blady.agent.buttons import ButtonsRegistry
from blady.errors import ParseFailureError
from blady.tasks.store import TaskStore

SendButton = Callable[[str, str, str], Awaitable[None]]  # (chat_id, display_text, button_id)


class ButtonResponseAction(Action):
    def __init__(self, buttons: ButtonsRegistry, send_button: SendButton, tasks: TaskStore):
        self.buttons = buttons
        self.send_button = send_button
        self.tasks = tasks

    @property
    def name(self) -> str:
        return "button_response"

    @property
    def description(self) -> str:
        return "Click a button option."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "displayText": {"type": "string"},
                "buttonID": {"type": "string"},
            },
            "required": ["displayText"],
        }

    @staticmethod
    def _parse(payload: Any) -> tuple[str, str]:
        if isinstance(payload, str):
            try:
                decoded = json.loads(payload)
            except json.JSONDecodeError:
                return payload, ""
            payload = decoded if isinstance(decoded, dict) else {"displayText": payload}
        if not isinstance(payload, dict):
            raise ParseFailureError("button_response: content must be an object or a string")
        return str(payload.get("displayText") or ""), str(payload.get("buttonID") or "")

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        display_text, button_id = self._parse(payload)
        if not display_text and not button_id:
            raise ParseFailureError("button_response: displayText or buttonID required")
        chat_id = (ctx.task.chat_id or ctx.task.contact) if ctx.task is not None else ctx.chat_id
        button_id, found = self.buttons.resolve(chat_id, display_text, button_id)
        if found is None:
            logger.info(f"[Buttons] No interactive message known for {chat_id}; sending {display_text!r} as text")
        await self.send_button(chat_id, display_text, button_id)
        await mark_task_running(self.tasks, ctx)
