"""Event types for the message bus."""

from dataclasses import dataclass, field
from typing import Any, Literal

ContentKind = Literal["text", "extended_text", "buttons", "list", "media", "other"]


@dataclass
class InboundMessage:
    """Message received from a chat channel."""

    channel: str  # whatsapp
    message_id: str
    sender_id: str  # Full sender address
    chat_id: str  # Chat the message belongs to
    content: str  # Text, with button/list options rendered in
    timestamp: int = 0  # Unix seconds
    from_me: bool = False
    is_group: bool = False
    kind: ContentKind = "text"
    options: list[tuple[str, str]] = field(default_factory=list)  # (display text, id) for buttons/list
    media_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    trace_id: str | None = None  # Correlation id for logs

    @property
    def is_self_chat(self) -> bool:
        """The operator writing into their own note-to-self chat."""
        return self.from_me and _user(self.chat_id) == _user(self.sender_id)

    @property
    def is_interactive(self) -> bool:
        return self.kind in ("buttons", "list") and bool(self.options)


@dataclass
class HistoryEntry:
    message_id: str
    chat_id: str
    sender_id: str
    content: str
    timestamp: int
    from_me: bool = False


@dataclass
class HistoryBatch:
    """Backfill sent by the bridge after login."""

    channel: str
    entries: list[HistoryEntry] = field(default_factory=list)


@dataclass
class ContactsUpdate:
    """Full address book as reported by the bridge."""

    channel: str
    contacts: list[dict[str, Any]] = field(default_factory=list)


BusEvent = InboundMessage | HistoryBatch | ContactsUpdate


def _user(address: str) -> str:
    """User part of an address: 34600111222:12@s.whatsapp.net -> 34600111222."""
    return address.split("@", 1)[0].split(":", 1)[0]
