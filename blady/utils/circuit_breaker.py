"""Circuit breaker for the LLM backend.

After `failure_threshold` consecutive failed calls the circuit opens and calls
fail fast until `recovery_timeout_seconds` have passed; then one probe call is
let through (half open) and its outcome closes or reopens the circuit.
"""

import time
from typing import Literal

State = Literal["closed", "open", "half_open"]


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 3, recovery_timeout_seconds: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self.state: State = "closed"
        self._failures = 0
        self._opened_at = 0.0

    def allow(self) -> bool:
        """False while open; moves to half_open once the recovery timeout elapsed."""
        if self.state == "open":
            if time.monotonic() - self._opened_at < self.recovery_timeout_seconds:
                return False
            self.state = "half_open"
        return True

    def record_success(self) -> None:
        self._failures = 0
        self.state = "closed"

    def record_failure(self) -> None:
        self._failures += 1
        if self.state == "half_open" or self._failures >= self.failure_threshold:
            self.state = "open"
            self._opened_at = time.monotonic()
