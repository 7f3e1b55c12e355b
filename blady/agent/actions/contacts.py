"""search_contacts: look up an address by name or number; results go back to the model."""

from typing import Any

from blady.agent.actions.base import Action, ActionContext, payload_object
from blady.agent.contacts import ContactDirectory
from blady.errors import ParseFailureError


class SearchContactsAction(Action):
    def __init__(self, directory: ContactDirectory):
        self.directory = directory

    @property
    def name(self) -> str:
        return "search_contacts"

    @property
    def description(self) -> str:
        return (
            "Search for a contact's JID by name (fuzzy match) or number. Use this to find the JID before "
            "sending messages or creating tasks if the exact JID is unknown."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The name or number term to search for (case-insensitive)"},
            },
            "required": ["query"],
        }

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        if isinstance(payload, str) and not payload.lstrip().startswith("{"):
            query = payload
        else:
            query = str(payload_object(payload, self.name).get("query") or "")
        if not query.strip():
            raise ParseFailureError("search_contacts: empty query")
        hits = self.directory.search(query)
        lines = "\n".join(f"- {c.name or '(no name)'}: {c.number}" for c in hits) or "No contacts found."
        ctx.tool_outputs.append(f"[search_contacts] Results for '{query}':\n{lines}")
