"""Async message bus for decoupled channel-agent communication."""

import asyncio

from blady.bus.events import BusEvent


class MessageBus:
    """
    Channels push events (messages, history backfill, contact lists) to the
    inbound queue; the dispatcher consumes them one at a time.

    Outbound sends go straight through the channel interface: the agent needs
    the transport message id back to record bot messages in history.
    """

    def __init__(self, maxsize: int = 0):
        self.inbound: asyncio.Queue[BusEvent] = asyncio.Queue(maxsize=maxsize)

    async def publish_inbound(self, event: BusEvent) -> None:
        """Publish an event from a channel to the agent."""
        await self.inbound.put(event)

    async def consume_inbound(self) -> BusEvent:
        """Consume the next inbound event (blocks until available)."""
        return await self.inbound.get()

    @property
    def inbound_size(self) -> int:
        """Number of pending inbound events."""
        return self.inbound.qsize()
