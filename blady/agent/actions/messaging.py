"""response / message_master: text going to the counterparty or to the operator."""

from typing import Any

from loguru import logger

from blady.agent.actions.base import BOT_PREFIX, Action, ActionContext, SendText, payload_text, task_prefix
from blady.agent.watcher import LET_IT_BE, SafetyGate
from blady.errors import GateError, InvalidStateError, ParseFailureError
from blady.tasks.store import TaskStore
from blady.tasks.types import STATUS_PENDING, STATUS_RUNNING


async def mark_task_running(tasks: TaskStore, ctx: ActionContext) -> None:
    """pending → running after the first outbound message of a task."""
    if ctx.task is None or ctx.task.status != STATUS_PENDING:
        return
    try:
        tasks.set_running(ctx.task.id)
    except InvalidStateError as e:
        logger.warning(f"Task {ctx.task.id} not flipped to running: {e}")
        return
    ctx.task.status = STATUS_RUNNING


class ResponseAction(Action):
    """
    Command mode: reply to the operator, prefixed.
    Behavior mode: send to the contact.
    Task mode: Watcher check first; allowed messages go to the contact, blocked
    ones are withheld and reported, a failed check reports and fails.
    """

    def __init__(self, send_to_operator: SendText, tasks: TaskStore, gate: SafetyGate | None = None):
        self.send_to_operator = send_to_operator
        self.tasks = tasks
        self.gate = gate

    @property
    def name(self) -> str:
        return "response"

    @property
    def description(self) -> str:
        return "A message sent to the 3rd party (as the Master)."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The message text."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        text = payload_text(payload)
        if not text.strip():
            raise ParseFailureError("response: empty message")

        if ctx.task is None:
            if ctx.send_to_contact is not None:
                await ctx.send_to_contact(text)
            else:
                await self.send_to_operator(BOT_PREFIX + text)
            return

        task = ctx.task
        prefix = task_prefix(task.id)
        if self.gate is not None:
            try:
                verdict = await self.gate.check(text, ctx.context)
            except GateError as e:
                await self.send_to_operator(f"{prefix}Error in Watcher check: {e}")
                raise
            if not verdict.allow:
                await self.send_to_operator(
                    f"{prefix}[Watcher] : Blocked: \"{text}\". Reason: {verdict.reason} ('{LET_IT_BE}' cancels block)"
                )
                if ctx.send_to_contact is not None:
                    await self.gate.withhold(text, task.chat_id or task.contact, ctx.send_to_contact)
                return

        if ctx.send_to_contact is None:
            logger.warning(f"Task {task.id}: no contact sender, response dropped")
            return
        await ctx.send_to_contact(text)
        await mark_task_running(self.tasks, ctx)


class MessageMasterAction(Action):
    def __init__(self, send_to_operator: SendText):
        self.send_to_operator = send_to_operator

    @property
    def name(self) -> str:
        return "message_master"

    @property
    def description(self) -> str:
        return "A private note or summary for the Master."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "string", "description": "The message content."}

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        text = payload_text(payload)
        prefix = task_prefix(ctx.task.id) if ctx.task is not None else BOT_PREFIX
        await self.send_to_operator(prefix + text)
