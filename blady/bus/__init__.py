"""Message bus module for decoupled channel-agent communication."""

from blady.bus.events import ContactsUpdate, HistoryBatch, HistoryEntry, InboundMessage
from blady.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundMessage", "HistoryBatch", "HistoryEntry", "ContactsUpdate"]
