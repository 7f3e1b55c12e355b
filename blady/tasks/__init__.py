"""Durable background tasks."""

from blady.tasks.store import TaskStore
from blady.tasks.types import Task

__all__ = ["Task", "TaskStore"]
