"""Agent actions."""

from pathlib import Path

from blady.agent.actions.base import Action, ActionContext, ActionSchema, SendText
from blady.agent.actions.behaviors import DisableBehaviorAction, EnableBehaviorAction
from blady.agent.actions.buttons import ButtonResponseAction, SendButton
from blady.agent.actions.contacts import SearchContactsAction
from blady.agent.actions.custom import load_custom_actions
from blady.agent.actions.media import SendMedia, SendMediaAction
from blady.agent.actions.memory import MemoryAppendAction, MemoryUpdateAction
from blady.agent.actions.messaging import MessageMasterAction, ResponseAction
from blady.agent.actions.registry import ActionRegistry
from blady.agent.actions.tasks import (
    ConfirmTaskAction,
    CreateTaskAction,
    DeleteTaskAction,
    PauseTaskAction,
    ResumeTaskAction,
    TaskCallback,
)
from blady.agent.buttons import ButtonsRegistry
from blady.agent.contacts import ContactDirectory
from blady.agent.memory import MemoryStore
from blady.agent.watcher import SafetyGate
from blady.tasks.store import TaskStore


def build_registry(
    *,
    memory: MemoryStore,
    tasks: TaskStore,
    directory: ContactDirectory,
    buttons: ButtonsRegistry,
    send_to_operator: SendText,
    send_media: SendMedia,
    send_button: SendButton,
    gate: SafetyGate | None = None,
    on_task_started: TaskCallback | None = None,
    on_task_resumed: TaskCallback | None = None,
    custom_actions_dir: Path | None = None,
) -> ActionRegistry:
    """Registry with every built-in action plus the HTTP actions found in `custom_actions_dir`."""
    registry = ActionRegistry()
    registry.register(MemoryUpdateAction(memory))
    registry.register(MemoryAppendAction(memory))
    registry.register(ResponseAction(send_to_operator, tasks, gate))
    registry.register(MessageMasterAction(send_to_operator))
    registry.register(CreateTaskAction(tasks, directory, send_to_operator))
    registry.register(DeleteTaskAction(tasks))
    registry.register(ConfirmTaskAction(tasks, on_task_started))
    registry.register(PauseTaskAction(tasks))
    registry.register(ResumeTaskAction(tasks, on_task_resumed))
    registry.register(SendMediaAction(send_media))
    registry.register(SendMediaAction(send_media, to_master=True))
    registry.register(ButtonResponseAction(buttons, send_button, tasks))
    registry.register(EnableBehaviorAction(send_to_operator))
    registry.register(DisableBehaviorAction(send_to_operator))
    registry.register(SearchContactsAction(directory))
    if custom_actions_dir is not None:
        load_custom_actions(custom_actions_dir, registry)
    return registry


__all__ = ["Action", "ActionContext", "ActionRegistry", "ActionSchema", "build_registry", "load_custom_actions"]
