"""Shared fixtures for integration tests."""

import pytest

from feature_loader.core.authorization import RoleHierarchyGate
from feature_loader.core.loading import LoadingStateManager
from feature_loader.core.orchestrator import ModuleLoadOrchestrator
from feature_loader.core.registry import ModuleRegistry, Principal
from feature_loader.core.resilience import RetryConfig, RetryManager


@pytest.fixture
def fast_retry_config():
    """Real-time retry policy short enough for the test suite."""
    return RetryConfig(
        max_attempts=3,
        base_delay=0.1,
        max_delay=2.0,
        backoff_multiplier=2.0,
        jitter=False,
        circuit_breaker_threshold=3,
        circuit_breaker_cooldown=0.3,
    )


@pytest.fixture
def registry():
    return ModuleRegistry.from_entries(
        [
            {"id": "codec", "name": "JSON Codec", "import_path": "json", "preload": True},
            {"id": "csv", "name": "CSV", "import_path": "csv", "preload": True},
            {
                "id": "admin-console",
                "name": "Admin Console",
                "required_role": "admin",
                "import_path": "string",
            },
        ]
    )


@pytest.fixture
def principal():
    return Principal(user_id="u-integration", role="manager")


@pytest.fixture
def build_orchestrator(fast_retry_config):
    """Factory for orchestrators using real sleeps and the real clock."""

    def _build(module_loader=None, config=None):
        kwargs = {}
        if module_loader is not None:
            kwargs["module_loader"] = module_loader
        return ModuleLoadOrchestrator(
            RoleHierarchyGate(),
            retry_manager=RetryManager(config or fast_retry_config),
            loading_state=LoadingStateManager(slow_threshold=0.15),
            **kwargs,
        )

    return _build
