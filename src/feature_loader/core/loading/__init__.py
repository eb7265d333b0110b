"""Observable per-module loading state."""

from feature_loader.core.loading.models import (
    ALLOWED_TRANSITIONS,
    SLOW_LOADING_THRESHOLD,
    LoadingState,
    LoadingStatus,
    LoadingSummary,
    StateCallback,
    Unsubscribe,
)
from feature_loader.core.loading.state import LoadingStateManager

__all__ = [
    "ALLOWED_TRANSITIONS",
    "SLOW_LOADING_THRESHOLD",
    "LoadingState",
    "LoadingStateManager",
    "LoadingStatus",
    "LoadingSummary",
    "StateCallback",
    "Unsubscribe",
]
