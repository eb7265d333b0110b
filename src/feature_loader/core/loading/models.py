"""Loading state data models.

LoadingState snapshots are immutable; LoadingStateManager replaces a
module's snapshot on every change and hands the new one to subscribers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from feature_loader.core.resilience.models import ModuleLoadingError

# Seconds a load may stay in ``loading`` before it is flagged as slow
SLOW_LOADING_THRESHOLD = 5.0


class LoadingStatus(str, Enum):
    """Lifecycle status of a module load."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


# Status changes permitted by the state machine. ``reset`` to idle is
# allowed from anywhere and is not listed here.
ALLOWED_TRANSITIONS: Mapping[LoadingStatus, FrozenSet[LoadingStatus]] = {
    LoadingStatus.IDLE: frozenset({LoadingStatus.LOADING, LoadingStatus.ERROR}),
    LoadingStatus.LOADING: frozenset({LoadingStatus.SUCCESS, LoadingStatus.ERROR}),
    LoadingStatus.SUCCESS: frozenset({LoadingStatus.LOADING, LoadingStatus.ERROR}),
    LoadingStatus.ERROR: frozenset({LoadingStatus.LOADING, LoadingStatus.ERROR}),
}


@dataclass(frozen=True)
class LoadingState:
    """Snapshot of one module's loading state.

    Attributes:
        module_id: Module the state belongs to
        status: Current lifecycle status
        start_time: Clock reading when the current load started
        duration: Seconds from start to settlement (None while loading)
        error: Classified failure when status is ``error``
        progress: Advisory completion percentage (0-100)
        retry_count: Retries performed by the current load
        slow_loading: True once a load has been pending past the threshold
        message: Human-readable status line for the UI
    """

    module_id: str
    status: LoadingStatus = LoadingStatus.IDLE
    start_time: Optional[float] = None
    duration: Optional[float] = None
    error: Optional[ModuleLoadingError] = None
    progress: int = 0
    retry_count: int = 0
    slow_loading: bool = False
    message: str = ""

    @property
    def is_loading(self) -> bool:
        return self.status == LoadingStatus.LOADING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "module_id": self.module_id,
            "status": self.status.value,
            "start_time": self.start_time,
            "duration": self.duration,
            "error": self.error.to_dict() if self.error else None,
            "progress": self.progress,
            "retry_count": self.retry_count,
            "slow_loading": self.slow_loading,
            "message": self.message,
        }


@dataclass(frozen=True)
class LoadingSummary:
    """Counts of modules per status across the manager."""

    total_modules: int = 0
    loading_modules: int = 0
    completed_modules: int = 0
    failed_modules: int = 0
    slow_modules: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_modules": self.total_modules,
            "loading_modules": self.loading_modules,
            "completed_modules": self.completed_modules,
            "failed_modules": self.failed_modules,
            "slow_modules": self.slow_modules,
        }


StateCallback = Callable[[LoadingState], None]
Unsubscribe = Callable[[], None]
