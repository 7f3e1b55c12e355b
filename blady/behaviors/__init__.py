"""Contact-scoped standing behaviors."""

from blady.behaviors.store import Behavior, BehaviorStore

__all__ = ["Behavior", "BehaviorStore"]
