"""Agent loop: prompt → LLM → {"actions": [...]} → dispatch, re-prompting on tool output."""

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from blady.agent.actions.base import ActionContext, SendText, payload_text
from blady.agent.actions.registry import ActionRegistry
from blady.agent.context import ContextBuilder, Mode
from blady.agent.conversations import CancelToken
from blady.behaviors.store import Behavior, BehaviorStore
from blady.errors import ParseFailureError
from blady.providers.base import LLMProvider
from blady.tasks.store import TaskStore
from blady.tasks.types import Task
from blady.utils.helpers import clean_json

TOOL_OUTPUTS_TAG = "[SYSTEM: tool outputs]"

# Actions hidden from the model per mode
COMMAND_EXCLUDE = frozenset({"button_response"})
TASK_EXCLUDE = frozenset({
    "create_task", "delete_task", "confirm_task", "resume_task", "send_media_to_master",
    "enable_behavior", "disable_behavior", "search_contacts",
})
BEHAVIOR_EXCLUDE = frozenset({
    "create_task", "delete_task", "confirm_task", "pause_task", "resume_task",
    "enable_behavior", "disable_behavior",
})


@dataclass
class ExecutedAction:
    type: str
    content: str  # JSON strings unwrapped, objects re-dumped


def parse_actions(raw: str) -> list[dict[str, Any]]:
    """Parse the model output into a list of {type, content} items. Raises ParseFailureError."""
    try:
        data = json.loads(clean_json(raw))
    except json.JSONDecodeError as e:
        raise ParseFailureError(f"failed to parse bot response json: {e}") from e
    if not isinstance(data, dict):
        raise ParseFailureError("bot response is not a JSON object")
    actions = data.get("actions") or []
    if not isinstance(actions, list):
        raise ParseFailureError("'actions' is not a list")
    return actions


class AgentLoop:
    """
    Shared protocol of the three entry points (command, task, behavior mode):

    1. build the prompt (memory, tasks, contacts, window, actions minus mode exclusions)
    2. call the LLM and parse {"actions": [...]}; a parse failure executes nothing
    3. dispatch each action in order; unknown or failing actions are logged and skipped
    4. if actions produced tool outputs, append them to the message and repeat,
       at most `max_recursion` times
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: ActionRegistry,
        context_builder: ContextBuilder,
        tasks: TaskStore,
        behaviors: BehaviorStore | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.13,
        max_recursion: int = 5,
    ):
        self.provider = provider
        self.registry = registry
        self.context_builder = context_builder
        self.tasks = tasks
        self.behaviors = behaviors
        self.model = model or provider.get_default_model()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_recursion = max_recursion

    # ========== Entry points ==========

    async def process(
        self,
        message: str,
        context: list[str],
        chat_id: str = "",
        cancel: CancelToken | None = None,
    ) -> list[ExecutedAction]:
        """Command mode: the operator's own chat."""
        return await self._run(
            mode="command",
            message=message,
            context=context,
            exclude=COMMAND_EXCLUDE,
            active_tasks=self.tasks.list_active(),
            chat_id=chat_id,
            cancel=cancel,
            tag="command",
        )

    async def process_task(
        self,
        task: Task,
        message: str,
        context: list[str],
        send_to_contact: SendText | None,
    ) -> list[ExecutedAction]:
        """Task mode: talk to the task's counterparty. The active-task list is replaced by the current task."""
        return await self._run(
            mode="task",
            message=message,
            context=context,
            exclude=TASK_EXCLUDE,
            current_task=task,
            send_to_contact=send_to_contact,
            chat_id=task.chat_id or task.contact,
            tag=f"task-{task.id}",
        )

    async def process_behaviors(
        self,
        contact: str,
        behaviors: list[Behavior],
        message: str,
        context: list[str],
        send_to_contact: SendText | None,
    ) -> list[ExecutedAction]:
        """Behavior mode: every enabled behavior of the contact folded into one prompt."""
        return await self._run(
            mode="behavior",
            message=message,
            context=context,
            exclude=BEHAVIOR_EXCLUDE,
            behaviors=behaviors,
            send_to_contact=send_to_contact,
            chat_id=contact,
            tag="behavior",
        )

    # ========== Protocol ==========

    async def _run(
        self,
        mode: Mode,
        message: str,
        context: list[str],
        exclude: frozenset[str],
        active_tasks: list[Task] | None = None,
        current_task: Task | None = None,
        behaviors: list[Behavior] | None = None,
        send_to_contact: SendText | None = None,
        chat_id: str = "",
        cancel: CancelToken | None = None,
        tag: str = "",
    ) -> list[ExecutedAction]:
        executed: list[ExecutedAction] = []
        current_msg = message

        for depth in range(self.max_recursion + 1):
            if cancel is not None:
                cancel.raise_if_cancelled()

            messages = self.context_builder.build_messages(
                mode,
                current_msg,
                context,
                self.registry.schema_dicts(exclude),
                active_tasks=active_tasks,
                current_task=current_task,
                behaviors=behaviors,
            )
            logger.debug(f"[Agent:{tag}] Prompt:\n{messages[-1]['content']}")
            response = await self.provider.chat(
                messages,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                tag=tag,
            )
            logger.debug(f"[Agent:{tag}] Raw response:\n{response.content}")
            raw_actions = parse_actions(response.content)

            ctx = ActionContext(
                context=context,
                task=current_task,
                behaviors=self.behaviors,
                send_to_contact=send_to_contact,
                tool_outputs=[],
                chat_id=chat_id,
            )
            for raw in raw_actions:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                done = await self._dispatch(raw, ctx, exclude, tag)
                if done is not None:
                    executed.append(done)

            if not ctx.tool_outputs:
                break
            if depth == self.max_recursion:
                logger.warning(f"[Agent:{tag}] Recursion ceiling ({self.max_recursion}) reached; dropping further tool output")
                break
            current_msg = f"{current_msg}\n\n{TOOL_OUTPUTS_TAG}\n" + "\n".join(ctx.tool_outputs)
            logger.info(f"[Agent:{tag}] Re-prompting with {len(ctx.tool_outputs)} tool outputs (depth {depth + 1})")

        return executed

    async def _dispatch(
        self,
        raw: Any,
        ctx: ActionContext,
        exclude: frozenset[str],
        tag: str,
    ) -> ExecutedAction | None:
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            logger.warning(f"[Agent:{tag}] Malformed action skipped: {raw!r}")
            return None
        name = raw["type"]
        action = self.registry.get(name)
        if action is None or name in exclude:
            logger.warning(f"[Agent:{tag}] Unknown action type: {name}")
            return None
        payload = raw.get("content")
        try:
            await action.execute(ctx, payload)
        except Exception as e:
            logger.error(f"[Agent:{tag}] Action {name} failed: {e}")
            return None
        logger.info(f"[Agent:{tag}] Executed {name}")
        return ExecutedAction(type=name, content=payload_text(payload))
