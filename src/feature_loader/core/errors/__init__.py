"""Error hierarchy for feature-loader.

Exception classes live in ``feature_loader.core.errors.loading``; this
__init__.py re-exports them together with the response mapping helpers.

Usage:
    from feature_loader.core.errors import CircuitOpenError, error_to_response
"""

from feature_loader.core.errors.base import (
    ERROR_MAPPINGS,
    KIND_MAPPINGS,
    error_to_response,
    load_failure_to_response,
)
from feature_loader.core.errors.loading import (
    CircuitOpenError,
    FeatureLoaderError,
    InvalidStateTransitionError,
    LoadTimeoutError,
    ModuleNotRegisteredError,
    ModulePermissionError,
)

__all__ = [
    # Registry
    "ERROR_MAPPINGS",
    "KIND_MAPPINGS",
    "error_to_response",
    "load_failure_to_response",
    # Exceptions
    "FeatureLoaderError",
    "CircuitOpenError",
    "ModulePermissionError",
    "InvalidStateTransitionError",
    "ModuleNotRegisteredError",
    "LoadTimeoutError",
]
