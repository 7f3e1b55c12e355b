"""Chat channels module."""

from blady.channels.base import BaseChannel
from blady.channels.whatsapp import WhatsAppChannel

__all__ = ["BaseChannel", "WhatsAppChannel"]
