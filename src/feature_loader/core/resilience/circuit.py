"""Per-module circuit breaker.

A breaker opens after ``threshold`` consecutive failed attempts and closes
again once ``cooldown`` seconds have passed since it opened. The cooldown is
evaluated lazily whenever the breaker is queried; there is no background
timer.
"""

import logging
import time
from typing import Callable, Optional

from feature_loader.core.observability import get_audit_logger
from feature_loader.core.resilience.models import (
    CircuitState,
    CircuitStatus,
    ModuleLoadingError,
)

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Circuit breaker for a single module id.

    Owned by RetryManager; threshold and cooldown are read from the active
    RetryConfig on every call so ``update_config`` applies immediately.
    """

    def __init__(
        self,
        module_id: str,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.module_id = module_id
        self.state = CircuitState()
        self._clock = clock or time.monotonic

    @property
    def failure_count(self) -> int:
        return self.state.consecutive_failures

    def is_open(self, cooldown: float) -> bool:
        """Check whether the breaker is open, closing it if the cooldown elapsed."""
        if self.state.status != CircuitStatus.OPEN:
            return False

        opened_at = self.state.opened_at or 0.0
        if self._clock() - opened_at >= cooldown:
            self._transition(CircuitStatus.CLOSED, action="cooldown_elapsed")
            self.state.consecutive_failures = 0
            self.state.opened_at = None
            return False
        return True

    def retry_after(self, cooldown: float) -> float:
        """Seconds remaining until the cooldown elapses (0 when closed)."""
        if self.state.status != CircuitStatus.OPEN or self.state.opened_at is None:
            return 0.0
        return max(0.0, cooldown - (self._clock() - self.state.opened_at))

    def record_success(self) -> None:
        if self.state.status == CircuitStatus.OPEN:
            self._transition(CircuitStatus.CLOSED, action="recovery")
        self.state.consecutive_failures = 0
        self.state.opened_at = None
        self.state.last_error = None

    def record_failure(self, error: ModuleLoadingError, threshold: int) -> bool:
        """Record a failed attempt.

        Returns:
            True if this failure tripped the breaker open
        """
        self.state.consecutive_failures += 1
        self.state.last_error = error
        if (
            self.state.status == CircuitStatus.CLOSED
            and self.state.consecutive_failures >= threshold
        ):
            self._transition(
                CircuitStatus.OPEN,
                action="tripped",
                consecutive_failures=self.state.consecutive_failures,
                error_kind=error.kind.value,
            )
            self.state.opened_at = self._clock()
            return True
        return False

    def reset(self) -> None:
        self.state = CircuitState()

    def _transition(self, new_status: CircuitStatus, **details: object) -> None:
        old_status = self.state.status
        self.state.status = new_status
        logger.info(
            "Circuit for %s: %s -> %s", self.module_id, old_status.value, new_status.value
        )
        get_audit_logger().circuit_state_change(
            self.module_id,
            old_state=old_status.value,
            new_state=new_status.value,
            **details,
        )
