"""Context builder for assembling agent prompts."""

import json
from datetime import datetime
from typing import Any, Literal

from blady.agent.contacts import ContactDirectory
from blady.agent.memory import MemoryStore
from blady.behaviors.store import Behavior, BehaviorStore
from blady.tasks.types import Task

Mode = Literal["command", "task", "behavior"]

IDENTITY = """You are Blady, a personal assistant that manages WhatsApp on behalf of your Master.
Always write in {language} unless the person you talk to clearly uses another language.
Current date and time: {now}"""

MODE_INSTRUCTIONS: dict[str, str] = {
    "command": """## Mode: command
You are talking with your Master in their private note-to-self chat. The Master gives you orders:
create tasks for contacts, confirm, pause, resume or delete them, remember things, enable behaviors.
Every new task is created unconfirmed: show it to the Master and wait for an explicit confirmation
before using confirm_task. Use search_contacts when you do not know the exact contact number.""",
    "task": """## Mode: task
You are talking with a third party on behalf of your Master to achieve the Current Task objective.
You speak AS the Master (first person), never mention that you are an assistant.
Use response for messages to the third party and message_master to report progress, ask the
Master for missing information, or tell them the objective is achieved. When the objective is
achieved or cannot be achieved, tell the Master and pause the task.""",
    "behavior": """## Mode: behavior
You are handling a new message from a contact following the standing behaviors the Master enabled
for that contact (listed below). Follow them literally. If none of them applies to the message,
return an empty actions list.""",
}

PROTOCOL = """## Protocol
Answer ONLY with a JSON object, no prose and no code fences:
{"actions": [{"type": "<action name>", "content": <action content>}, ...]}
Use only the actions listed in Available Actions. An empty list is valid."""


class ContextBuilder:
    """
    Builds the [system, user] message pair for one agent turn.

    The user prompt is a stack of sections: mode instructions, memory, tasks,
    contacts, behaviors (behavior mode), conversation window, available
    actions, protocol and the current message.
    """

    def __init__(
        self,
        memory: MemoryStore,
        directory: ContactDirectory,
        behaviors: BehaviorStore | None = None,
        language: str = "Spanish",
    ):
        self.memory = memory
        self.directory = directory
        self.behaviors = behaviors
        self.language = language

    def build_system_prompt(self) -> str:
        now = datetime.now().strftime("%A, %Y-%m-%d %H:%M:%S")
        return IDENTITY.format(language=self.language, now=now)

    def _behavior_section(self, behaviors: list[Behavior]) -> str:
        blocks = []
        for b in behaviors:
            template = self.behaviors.load_template(b.name) if self.behaviors else ""
            block = f"### Behavior {b.id}: {b.name}\n{template.strip() or '(no template text)'}"
            if b.comments:
                block += f"\nMaster's comments: {b.comments}"
            blocks.append(block)
        return "# Enabled Behaviors\n" + "\n\n".join(blocks)

    def build_user_prompt(
        self,
        mode: Mode,
        message: str,
        context: list[str],
        actions: list[dict[str, Any]],
        active_tasks: list[Task] | None = None,
        current_task: Task | None = None,
        behaviors: list[Behavior] | None = None,
    ) -> str:
        parts = [MODE_INSTRUCTIONS[mode]]

        memory = self.memory.read().strip()
        parts.append(f"# Global Memory\n{memory or '(empty)'}")

        tasks_json = json.dumps([t.to_dict() for t in (active_tasks or [])], ensure_ascii=False)
        parts.append(f"# Active Tasks\n{tasks_json}")
        if current_task is not None:
            parts.append(f"# Current Task\n{json.dumps(current_task.to_dict(), indent=2, ensure_ascii=False)}")
        if mode == "command" and self.behaviors is not None:
            active = [b.to_dict() for b in self.behaviors.all_active()]
            templates = ", ".join(self.behaviors.available_templates()) or "none"
            parts.append(f"# Behaviors\nAvailable templates: {templates}\nActive: {json.dumps(active, ensure_ascii=False)}")

        parts.append(f"# Contacts\n{self.directory.to_json()}")

        if behaviors:
            parts.append(self._behavior_section(behaviors))

        parts.append("# Conversation Context\n" + ("\n".join(context) or "(no previous messages)"))
        parts.append("# Available Actions\n" + json.dumps(actions, indent=2, ensure_ascii=False))
        parts.append(PROTOCOL)
        parts.append(f"# Current Message\n{message or '(none: start or continue the task on your own initiative)'}")
        return "\n\n".join(parts)

    def build_messages(self, mode: Mode, message: str, context: list[str], actions: list[dict[str, Any]], **kwargs: Any) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.build_system_prompt()},
            {"role": "user", "content": self.build_user_prompt(mode, message, context, actions, **kwargs)},
        ]
