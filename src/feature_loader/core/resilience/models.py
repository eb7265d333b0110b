"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- ErrorKind enum for failure classification
- RetryConfig for backoff and circuit breaker tuning
- ModuleLoadingError, the classified failure value carried by loading state
- ErrorClassification for retry decisions
- CircuitStatus / CircuitState for per-module breakers
- RetryStats / GlobalStats for observability
- SleepFunc protocol for injectable async sleep
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class ErrorKind(str, Enum):
    """Classification of module loading failures."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    CHUNK_LOAD_ERROR = "chunk_load_error"
    PERMISSION_DENIED = "permission_denied"
    MODULE_ERROR = "module_error"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset(
    {ErrorKind.NETWORK_ERROR, ErrorKind.TIMEOUT, ErrorKind.CHUNK_LOAD_ERROR}
)


@dataclass(frozen=True)
class RetryConfig:
    """Retry and circuit breaker configuration.

    Immutable snapshot; swap it at runtime with ``RetryManager.update_config``.
    Durations are in seconds.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    # Circuit breaker
    circuit_breaker_threshold: int = 5
    circuit_breaker_cooldown: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.base_delay > self.max_delay:
            raise ValueError(
                f"base_delay ({self.base_delay}) must not exceed max_delay ({self.max_delay})"
            )
        if self.backoff_multiplier <= 1:
            raise ValueError(
                f"backoff_multiplier must be > 1, got {self.backoff_multiplier}"
            )
        if self.circuit_breaker_threshold < 1:
            raise ValueError(
                f"circuit_breaker_threshold must be >= 1, got {self.circuit_breaker_threshold}"
            )
        if self.circuit_breaker_cooldown < 0:
            raise ValueError(
                f"circuit_breaker_cooldown must be >= 0, got {self.circuit_breaker_cooldown}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "backoff_multiplier": self.backoff_multiplier,
            "jitter": self.jitter,
            "circuit_breaker_threshold": self.circuit_breaker_threshold,
            "circuit_breaker_cooldown": self.circuit_breaker_cooldown,
        }


@dataclass(frozen=True)
class ModuleLoadingError:
    """A classified module loading failure.

    ``retryable`` is true exactly for the transient kinds; build instances
    with :meth:`create` so the flag always follows ``kind``.
    """

    kind: ErrorKind
    message: str
    module_id: str
    retryable: bool
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_role: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        kind: ErrorKind,
        message: str,
        module_id: str,
        *,
        user_role: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> "ModuleLoadingError":
        return cls(
            kind=kind,
            message=message,
            module_id=module_id,
            retryable=kind.retryable,
            user_role=user_role,
            context=dict(context or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "module_id": self.module_id,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.user_role:
            result["user_role"] = self.user_role
        if self.context:
            result["context"] = self.context
        return result


@dataclass(frozen=True)
class ErrorClassification:
    """Classification result for a load failure."""

    kind: ErrorKind
    retryable: bool


class CircuitStatus(str, Enum):
    """Circuit breaker status."""

    CLOSED = "closed"
    OPEN = "open"


@dataclass
class CircuitState:
    """Per-module circuit breaker state.

    ``opened_at`` is a monotonic clock reading, not wall time.
    """

    status: CircuitStatus = CircuitStatus.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[float] = None
    last_error: Optional[ModuleLoadingError] = None


@dataclass
class RetryStats:
    """Per-module retry statistics."""

    total_attempts: int = 0
    successful_retries: int = 0
    failed_attempts: int = 0
    successful_loads: int = 0
    failed_loads: int = 0
    last_error_kind: Optional[ErrorKind] = None
    last_success: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "successful_retries": self.successful_retries,
            "failed_attempts": self.failed_attempts,
            "successful_loads": self.successful_loads,
            "failed_loads": self.failed_loads,
            "last_error_kind": self.last_error_kind.value if self.last_error_kind else None,
            "last_success": self.last_success,
        }


@dataclass
class GlobalStats:
    """Aggregate retry statistics across all modules."""

    total_attempts: int = 0
    successful_retries: int = 0
    failed_attempts: int = 0
    total_modules: int = 0
    successful_modules: int = 0
    success_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "successful_retries": self.successful_retries,
            "failed_attempts": self.failed_attempts,
            "total_modules": self.total_modules,
            "successful_modules": self.successful_modules,
            "success_rate": self.success_rate,
        }


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...
