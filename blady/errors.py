"""Exception hierarchy shared by the stores, the agent loop and the actions."""


class BladyError(Exception):
    """Base class for every error raised by blady."""


class NotFoundError(BladyError):
    """A task or behavior id does not exist."""


class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: int):
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class BehaviorNotFoundError(NotFoundError):
    def __init__(self, behavior_id: int):
        super().__init__(f"behavior {behavior_id} not found")
        self.behavior_id = behavior_id


class InvalidStateError(BladyError):
    """Illegal state-machine transition."""

    def __init__(self, task_id: int, status: str, expected: str):
        super().__init__(f"task {task_id} is not {expected} (current status: {status})")
        self.task_id = task_id
        self.status = status


class InvalidContactError(BladyError):
    """Task target is not a known contact."""


class ParseFailureError(BladyError):
    """Malformed LLM JSON or malformed action payload."""


class TransportError(BladyError):
    """Send/download failure reported by the messaging transport."""


class GateError(BladyError):
    """The watcher (safety gate) call itself failed."""


class UnknownActionError(BladyError):
    def __init__(self, name: str):
        super().__init__(f"action '{name}' is not registered")
        self.name = name


class StoreIOError(BladyError):
    """A task/behavior file could not be written."""


class LLMError(BladyError):
    """The LLM backend call failed after retries."""
