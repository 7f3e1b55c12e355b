"""Base channel interface for chat platforms."""

from abc import ABC, abstractmethod
from typing import Any

from blady.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    Currently only WhatsApp is supported. A channel pushes inbound events to
    the bus and exposes the send/download primitives the agent calls directly.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
            bus: The message bus for communication.
        """
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """
        Start the channel and begin listening for events.

        This should be a long-running async task that:
        1. Connects to the chat platform
        2. Listens for incoming events
        3. Publishes them to the bus
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and clean up resources."""

    @abstractmethod
    async def send_message(self, target: str, content: str) -> str:
        """Send a text message. Returns the transport message id; raises TransportError."""

    @abstractmethod
    async def send_button_response(self, chat_id: str, display_text: str, button_id: str, quoted_id: str = "", participant: str = "") -> str:
        """Click a button (or pick a list row) of an interactive message."""

    @abstractmethod
    async def send_media(self, target: str, media_id: str) -> str:
        """Forward a previously received media item."""

    @abstractmethod
    async def download(self, reference: str) -> bytes:
        """Fetch the bytes of a media item."""

    @property
    @abstractmethod
    def own_id(self) -> str:
        """Address of the logged-in account (the operator's note-to-self chat). Empty until known."""

    def _normalize_digits(self, value: str) -> str:
        """Keep only digits (compare phone numbers written in different formats)."""
        return "".join(c for c in str(value) if c.isdigit())

    def is_allowed(self, sender_id: str) -> bool:
        """
        Check if a contact may trigger tasks or behaviors.
        Compares the exact address and also the digits only of its user part
        (34600111222@s.whatsapp.net = +34 600 111 222). An empty allow list allows everyone.
        """
        allow_list = list(getattr(self.config, "allow_from", []) or [])
        if not allow_list:
            return True

        sender_str = str(sender_id).strip()
        if sender_str in allow_list:
            return True
        sender_digits = self._normalize_digits(sender_str.split("@", 1)[0].split(":", 1)[0])
        return bool(sender_digits) and any(
            sender_digits == self._normalize_digits(a.split("@", 1)[0]) for a in allow_list
        )

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running
