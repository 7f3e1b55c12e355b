"""Task types."""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Literal

TaskStatus = Literal["unconfirmed", "pending", "running", "paused", "finished"]

STATUS_UNCONFIRMED = "unconfirmed"
STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_FINISHED = "finished"

# Listed by list_active(); "finished" is terminal
ACTIVE_STATUSES = (STATUS_UNCONFIRMED, STATUS_PENDING, STATUS_RUNNING, STATUS_PAUSED)
# Eligible to receive contact messages
ENGAGED_STATUSES = (STATUS_RUNNING, STATUS_PENDING)


@dataclass
class Task:
    """A unit of delegated work performed on the operator's behalf with one contact."""
    id: int
    objective: str
    contact: str
    original_orders: str = ""
    chat_id: str = ""  # May diverge from contact when the transport re-routes (e.g. LID vs phone JID)
    status: TaskStatus = STATUS_UNCONFIRMED
    last_processed_timestamp: int = 0  # Unix seconds of the newest inbound message already handled
    schedule_datetime: str | None = None  # ISO local time "2024-12-31T23:59"; start deferred until then

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Optional fields are written only when set
        if not data["chat_id"]:
            data.pop("chat_id")
        if not data["last_processed_timestamp"]:
            data.pop("last_processed_timestamp")
        if not data["schedule_datetime"]:
            data.pop("schedule_datetime")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if "id" not in kwargs:
            raise ValueError("task record has no id")
        kwargs["id"] = int(kwargs["id"])
        kwargs["last_processed_timestamp"] = int(kwargs.get("last_processed_timestamp") or 0)
        kwargs.setdefault("objective", "")
        kwargs.setdefault("contact", "")
        return cls(**kwargs)

    def schedule_due(self, now: datetime | None = None) -> bool:
        """True when the task has no schedule or its schedule has come."""
        if not self.schedule_datetime:
            return True
        return parse_schedule(self.schedule_datetime) <= (now or datetime.now())


def parse_schedule(value: str) -> datetime:
    """Local time in ISO-8601 without timezone ("2024-12-31T23:59"). Raises ValueError."""
    parsed = datetime.fromisoformat(value.strip())
    # Aware values are compared in local time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
