"""send_media / send_media_to_master: forward a stored media item."""

from typing import Any, Awaitable, Callable

from blady.agent.actions.base import Action, ActionContext, payload_text
from blady.errors import ParseFailureError

MASTER = "master"

SendMedia = Callable[[str, str], Awaitable[None]]  # (target or "master", media_id)


class SendMediaAction(Action):
    """Target: the task chat in task mode, the current chat otherwise, or the operator."""

    def __init__(self, send_media: SendMedia, to_master: bool = False):
        self.send_media = send_media
        self.to_master = to_master

    @property
    def name(self) -> str:
        return "send_media_to_master" if self.to_master else "send_media"

    @property
    def description(self) -> str:
        if self.to_master:
            return "Send a media file private to the master."
        return "Send a media file back to the contact (in task mode) or to the current conversation."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The Media ID."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        media_id = payload_text(payload).strip().strip('"')
        if not media_id:
            raise ParseFailureError(f"{self.name}: missing media id")
        if self.to_master:
            target = MASTER
        elif ctx.task is not None:
            target = ctx.task.chat_id or ctx.task.contact
        else:
            target = ctx.chat_id
        await self.send_media(target, media_id)
