"""Core module loading components for feature-loader."""

from feature_loader.core.authorization import PermissionGate, RoleHierarchyGate
from feature_loader.core.loading import LoadingState, LoadingStateManager, LoadingStatus
from feature_loader.core.orchestrator import ModuleLoadOrchestrator
from feature_loader.core.registry import (
    LoadedModule,
    ModuleDescriptor,
    ModuleRegistry,
    Principal,
    import_feature_module,
)
from feature_loader.core.resilience import (
    ErrorKind,
    ModuleLoadingError,
    RetryConfig,
    RetryManager,
)

__all__ = [
    "ErrorKind",
    "LoadedModule",
    "LoadingState",
    "LoadingStateManager",
    "LoadingStatus",
    "ModuleDescriptor",
    "ModuleLoadOrchestrator",
    "ModuleLoadingError",
    "ModuleRegistry",
    "PermissionGate",
    "Principal",
    "RetryConfig",
    "RetryManager",
    "RoleHierarchyGate",
    "import_feature_module",
]
