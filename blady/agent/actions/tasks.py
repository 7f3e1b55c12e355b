"""Task management actions: create, delete, confirm, pause, resume."""

from typing import Any, Callable

from loguru import logger

from blady.agent.actions.base import BOT_PREFIX, Action, ActionContext, SendText, payload_id, payload_object
from blady.agent.contacts import ContactDirectory
from blady.errors import InvalidContactError
from blady.tasks.store import TaskStore
from blady.tasks.types import Task
from blady.utils.helpers import dump_json

TaskCallback = Callable[[Task], None]


class CreateTaskAction(Action):
    def __init__(self, tasks: TaskStore, directory: ContactDirectory, send_to_operator: SendText):
        self.tasks = tasks
        self.directory = directory
        self.send_to_operator = send_to_operator

    @property
    def name(self) -> str:
        return "create_task"

    @property
    def description(self) -> str:
        return "A new task to be added to the task list. Contains objective and contact."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "objective": {"type": "string"},
                "contact": {"type": "string", "description": "The contact number (e.g. 12345@s.whatsapp.net)"},
                "original_orders": {"type": "string"},
                "schedule_datetime": {
                    "type": "string",
                    "description": "ISO 8601 format without timezone (e.g. 2024-12-31T23:59), optional",
                },
            },
            "required": ["objective", "contact", "original_orders"],
        }

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        data = payload_object(payload, self.name)
        contact = str(data.get("contact") or "").strip()
        if not self.directory.has_number(contact):
            msg = f"Error: contact '{contact}' not found."
            await self.send_to_operator(BOT_PREFIX + msg)
            raise InvalidContactError(msg)
        try:
            task = self.tasks.create(
                objective=str(data.get("objective") or ""),
                contact=contact,
                original_orders=str(data.get("original_orders") or ""),
                schedule_datetime=(str(data["schedule_datetime"]) if data.get("schedule_datetime") else None),
            )
        except Exception as e:
            await self.send_to_operator(f"{BOT_PREFIX}Error creating task: {e}")
            raise
        await self.send_to_operator(f"{BOT_PREFIX}Task created:\n```json\n{dump_json(task.to_dict())}\n```")


class _TaskIdAction(Action):
    """Task state-machine wrapper whose content is the task id."""

    def __init__(self, tasks: TaskStore):
        self.tasks = tasks

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The Task ID."}

    def _task_id(self, ctx: ActionContext, payload: Any) -> int:
        # In task mode an empty content means "this task"
        if ctx.task is not None and payload in (None, ""):
            return ctx.task.id
        return payload_id(payload, self.name)


class DeleteTaskAction(_TaskIdAction):
    @property
    def name(self) -> str:
        return "delete_task"

    @property
    def description(self) -> str:
        return "Delete a task. Content is ID. ONLY BY USER REQUEST."

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        self.tasks.delete(self._task_id(ctx, payload))


class ConfirmTaskAction(_TaskIdAction):
    def __init__(self, tasks: TaskStore, on_task_started: TaskCallback | None = None):
        super().__init__(tasks)
        self.on_task_started = on_task_started

    @property
    def name(self) -> str:
        return "confirm_task"

    @property
    def description(self) -> str:
        return "Confirm a newly created task to start working. Content is ID."

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        task = self.tasks.confirm_and_get(self._task_id(ctx, payload))
        if self.on_task_started is not None:
            self.on_task_started(task)


class PauseTaskAction(_TaskIdAction):
    @property
    def name(self) -> str:
        return "pause_task"

    @property
    def description(self) -> str:
        return "Pause a task. Content is ID."

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        task = self.tasks.pause(self._task_id(ctx, payload))
        if ctx.task is not None and ctx.task.id == task.id:
            ctx.task.status = task.status


class ResumeTaskAction(_TaskIdAction):
    def __init__(self, tasks: TaskStore, on_task_resumed: TaskCallback | None = None):
        super().__init__(tasks)
        self.on_task_resumed = on_task_resumed

    @property
    def name(self) -> str:
        return "resume_task"

    @property
    def description(self) -> str:
        return "Resume a task. Content is ID."

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        task = self.tasks.resume(self._task_id(ctx, payload))
        if self.on_task_resumed is not None:
            self.on_task_resumed(task)
        else:
            logger.debug(f"Task {task.id} resumed (no resume callback)")
