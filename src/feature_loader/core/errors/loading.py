"""Module loading error classes.

Exceptions raised by the retry engine, the loading state machine, the module
registry and the orchestrator. Failures raised by a module's own load function
are never wrapped: callers always observe the original exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from feature_loader.core.resilience.models import ModuleLoadingError


class FeatureLoaderError(Exception):
    """Base class for errors raised by feature-loader itself."""


class CircuitOpenError(FeatureLoaderError):
    """Circuit breaker is open and the load was not attempted.

    Attributes:
        module_id: Module whose circuit is open.
        retry_after: Seconds until the cooldown elapses.
        last_error: The classified failure that tripped the breaker.
    """

    def __init__(
        self,
        message: str,
        module_id: Optional[str] = None,
        retry_after: Optional[float] = None,
        last_error: Optional[ModuleLoadingError] = None,
    ):
        super().__init__(message)
        self.module_id = module_id
        self.retry_after = retry_after
        self.last_error = last_error


class ModulePermissionError(FeatureLoaderError):
    """Principal is not allowed to load the module.

    Attributes:
        loading_error: The ``permission_denied`` ModuleLoadingError recorded
            in the loading state.
    """

    def __init__(self, loading_error: ModuleLoadingError):
        super().__init__(loading_error.message)
        self.loading_error = loading_error

    @property
    def module_id(self) -> str:
        return self.loading_error.module_id


class InvalidStateTransitionError(FeatureLoaderError):
    """Loading state machine rejected a transition.

    Attributes:
        module_id: Module whose state was being changed.
        from_status: Current status value.
        to_status: Requested status value.
    """

    def __init__(self, module_id: str, from_status: str, to_status: str):
        super().__init__(
            f"Invalid loading state transition for {module_id}: {from_status} -> {to_status}"
        )
        self.module_id = module_id
        self.from_status = from_status
        self.to_status = to_status


class ModuleNotRegisteredError(FeatureLoaderError):
    """Module id is not present in the module registry."""

    def __init__(self, module_id: str):
        super().__init__(f"Module not registered: {module_id}")
        self.module_id = module_id


class LoadTimeoutError(TimeoutError):
    """A single load attempt outlived its time limit.

    A ``TimeoutError`` subclass so it is classified as a retryable
    ``timeout`` failure.
    """

    def __init__(self, module_id: str, timeout: float):
        super().__init__(f"Module {module_id} loading timed out after {timeout:g}s")
        self.module_id = module_id
        self.timeout = timeout
