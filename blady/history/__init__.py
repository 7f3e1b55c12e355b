"""Persistent chat history."""

from blady.history.store import HistoryStore

__all__ = ["HistoryStore"]
