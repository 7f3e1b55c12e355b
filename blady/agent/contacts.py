"""Contact directory: the operator's address book as reported by the transport."""

import difflib
import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from loguru import logger


@dataclass
class Contact:
    name: str
    number: str  # Full address, e.g. 34600111222@s.whatsapp.net


class ContactDirectory:
    """Known contacts, rendered into prompts as compact JSON."""

    def __init__(self, contacts: Iterable[Contact] = ()):
        self._contacts: dict[str, Contact] = {}
        self.replace(contacts)

    def replace(self, contacts: Iterable[Contact]) -> None:
        self._contacts = {c.number: c for c in contacts if c.number}
        logger.info(f"[Contacts] Directory holds {len(self._contacts)} contacts")

    def update_from_raw(self, raw: list[dict[str, Any]]) -> None:
        """Load the bridge's `contacts` frame entries ({id|number, name|notify|pushName})."""
        contacts = []
        for item in raw:
            number = str(item.get("number") or item.get("id") or "").strip()
            name = str(item.get("name") or item.get("notify") or item.get("pushName") or "").strip()
            if number:
                contacts.append(Contact(name=name, number=number))
        self.replace(contacts)

    def add(self, contact: Contact) -> None:
        self._contacts[contact.number] = contact

    def has_number(self, number: str) -> bool:
        return bool(number) and number in self._contacts

    def to_json(self) -> str:
        return json.dumps([asdict(c) for c in self._contacts.values()], ensure_ascii=False, separators=(",", ":"))

    def search(self, query: str, limit: int = 5) -> list[Contact]:
        """Case-insensitive match on name or number; substring hits first, then close names."""
        q = query.strip().lower()
        if not q:
            return []
        hits = [c for c in self._contacts.values() if q in c.name.lower() or q in c.number.lower()]
        if len(hits) < limit:
            by_name = {c.name.lower(): c for c in self._contacts.values() if c.name}
            for name in difflib.get_close_matches(q, list(by_name), n=limit, cutoff=0.6):
                if by_name[name] not in hits:
                    hits.append(by_name[name])
        return hits[:limit]

    def __len__(self) -> int:
        return len(self._contacts)
