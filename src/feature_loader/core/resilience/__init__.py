"""Module loading resilience: retries, error classification, circuit breakers.

Centralized resilience utilities for feature module loading including:
- RetryConfig for backoff and circuit breaker tuning
- Error classification for unified retry/circuit-breaker decisions
- RetryManager with per-module circuit breakers and statistics
"""

from feature_loader.core.errors.loading import CircuitOpenError
from feature_loader.core.resilience.circuit import CircuitBreaker
from feature_loader.core.resilience.classifier import classify_error
from feature_loader.core.resilience.models import (
    RETRYABLE_KINDS,
    CircuitState,
    CircuitStatus,
    ErrorClassification,
    ErrorKind,
    GlobalStats,
    ModuleLoadingError,
    RetryConfig,
    RetryStats,
    SleepFunc,
)
from feature_loader.core.resilience.retry import (
    RetryManager,
    get_retry_manager,
    reset_retry_manager_for_testing,
)

__all__ = [
    # Models & enums
    "ErrorKind",
    "RETRYABLE_KINDS",
    "RetryConfig",
    "ModuleLoadingError",
    "ErrorClassification",
    "CircuitStatus",
    "CircuitState",
    "RetryStats",
    "GlobalStats",
    "SleepFunc",
    # Classification
    "classify_error",
    # Circuit breaker
    "CircuitBreaker",
    # Manager
    "RetryManager",
    "get_retry_manager",
    "reset_retry_manager_for_testing",
    # Error re-exports
    "CircuitOpenError",
]
