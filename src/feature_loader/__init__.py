"""Resilient dynamic loading of feature modules.

Example:
    from feature_loader import ModuleLoadOrchestrator, RoleHierarchyGate

    orchestrator = ModuleLoadOrchestrator(RoleHierarchyGate())
    module = await orchestrator.load_module(descriptor, principal)
"""

from feature_loader.core import (
    ErrorKind,
    LoadedModule,
    LoadingState,
    LoadingStateManager,
    LoadingStatus,
    ModuleDescriptor,
    ModuleLoadingError,
    ModuleLoadOrchestrator,
    ModuleRegistry,
    PermissionGate,
    Principal,
    RetryConfig,
    RetryManager,
    RoleHierarchyGate,
    import_feature_module,
)
from feature_loader.core.errors import (
    CircuitOpenError,
    FeatureLoaderError,
    InvalidStateTransitionError,
    ModuleNotRegisteredError,
    ModulePermissionError,
)

__all__ = [
    "CircuitOpenError",
    "ErrorKind",
    "FeatureLoaderError",
    "InvalidStateTransitionError",
    "LoadedModule",
    "LoadingState",
    "LoadingStateManager",
    "LoadingStatus",
    "ModuleDescriptor",
    "ModuleLoadOrchestrator",
    "ModuleLoadingError",
    "ModuleNotRegisteredError",
    "ModulePermissionError",
    "ModuleRegistry",
    "PermissionGate",
    "Principal",
    "RetryConfig",
    "RetryManager",
    "RoleHierarchyGate",
    "import_feature_module",
]
