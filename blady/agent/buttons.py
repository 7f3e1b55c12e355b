"""Last interactive (buttons or list) message per chat, used to answer it by display text."""

from dataclasses import dataclass, field

from loguru import logger


@dataclass
class ButtonsContext:
    message_id: str
    chat_id: str
    sender_id: str
    options: list[tuple[str, str]] = field(default_factory=list)  # (display_text, button/row id)

    def find_id(self, display_text: str) -> str | None:
        wanted = display_text.strip().lower()
        for text, option_id in self.options:
            if text.strip().lower() == wanted:
                return option_id
        return None


class ButtonsRegistry:
    """Most recent interactive message per chat id; a newer one replaces the older."""

    def __init__(self):
        self._by_chat: dict[str, ButtonsContext] = {}

    def remember(self, ctx: ButtonsContext) -> None:
        self._by_chat[ctx.chat_id] = ctx
        logger.debug(f"[Buttons] Stored interactive message {ctx.message_id} for {ctx.chat_id} ({len(ctx.options)} options)")

    def get(self, chat_id: str) -> ButtonsContext | None:
        return self._by_chat.get(chat_id)

    def resolve(self, chat_id: str, display_text: str, button_id: str = "") -> tuple[str, ButtonsContext | None]:
        """Return (button_id, context). A missing id is looked up by display text in the chat's context."""
        ctx = self._by_chat.get(chat_id)
        if button_id or ctx is None:
            return button_id, ctx
        return ctx.find_id(display_text) or "", ctx
