"""enable_behavior / disable_behavior: standing per-contact instructions."""

from typing import Any

from blady.agent.actions.base import BOT_PREFIX, Action, ActionContext, SendText, payload_id, payload_object
from blady.errors import BladyError, NotFoundError, ParseFailureError


def _store(ctx: ActionContext, action: str):
    if ctx.behaviors is None:
        raise BladyError(f"{action}: no behavior store in this context")
    return ctx.behaviors


class EnableBehaviorAction(Action):
    def __init__(self, send_to_operator: SendText):
        self.send_to_operator = send_to_operator

    @property
    def name(self) -> str:
        return "enable_behavior"

    @property
    def description(self) -> str:
        return (
            "Enable a standing behavior for a contact: every new message of that contact is handled "
            "following the named behavior template. Several behaviors may be active for one contact."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "contact": {"type": "string", "description": "The contact number"},
                "name": {"type": "string", "description": "Behavior template name"},
                "comments": {"type": "string", "description": "Extra instructions for this contact"},
            },
            "required": ["contact", "name"],
        }

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        store = _store(ctx, self.name)
        data = payload_object(payload, self.name)
        contact = str(data.get("contact") or "").strip()
        name = str(data.get("name") or "").strip()
        if not contact or not name:
            raise ParseFailureError("enable_behavior: contact and name are required")
        if not store.template_exists(name):
            available = ", ".join(store.available_templates()) or "none"
            await self.send_to_operator(f"{BOT_PREFIX}Error: behavior '{name}' does not exist (available: {available}).")
            raise NotFoundError(f"behavior template '{name}' not found")
        behavior = store.enable(contact, name, str(data.get("comments") or ""))
        await self.send_to_operator(f"{BOT_PREFIX}Behavior {behavior.id} '{name}' enabled for {contact}.")


class DisableBehaviorAction(Action):
    def __init__(self, send_to_operator: SendText):
        self.send_to_operator = send_to_operator

    @property
    def name(self) -> str:
        return "disable_behavior"

    @property
    def description(self) -> str:
        return "Disable (remove) an active behavior. Content is the behavior ID."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The Behavior ID."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        store = _store(ctx, self.name)
        behavior_id = payload_id(payload, self.name)
        store.disable(behavior_id)
        await self.send_to_operator(f"{BOT_PREFIX}Behavior {behavior_id} disabled.")
