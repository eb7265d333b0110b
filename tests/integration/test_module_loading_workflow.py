"""End-to-end module loading with real sleeps, imports and clocks."""

import asyncio
import csv
import json
import time

import pytest

from feature_loader.core.errors import CircuitOpenError, ModulePermissionError
from feature_loader.core.loading import LoadingStatus

pytestmark = pytest.mark.integration


class FlakyLoader:
    """Fails with network errors a fixed number of times, then succeeds."""

    def __init__(self, failures, delay=0.0):
        self.failures = failures
        self.delay = delay
        self.calls = 0

    async def __call__(self, descriptor):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise ConnectionError("Failed to fetch dynamically imported module")
        return "ok"


class TestRecoveryWorkflow:
    """Transient failures recover through real backoff sleeps."""

    @pytest.mark.asyncio
    async def test_recovers_after_two_network_failures(self, build_orchestrator, registry, principal):
        loader = FlakyLoader(failures=2)
        orchestrator = build_orchestrator(loader)

        started = time.monotonic()
        result = await orchestrator.load_module(registry.get("codec"), principal)
        elapsed = time.monotonic() - started

        assert result == "ok"
        # 0.1s + 0.2s of backoff
        assert elapsed >= 0.3
        stats = orchestrator.retry_manager.get_retry_stats("codec")
        assert stats.total_attempts == 3
        assert stats.successful_retries == 1
        state = orchestrator.loading_state.get_state("codec")
        assert state.status == LoadingStatus.SUCCESS
        assert state.retry_count == 2
        assert state.duration >= 0.3

    @pytest.mark.asyncio
    async def test_slow_load_is_flagged_then_cleared(self, build_orchestrator, registry, principal):
        orchestrator = build_orchestrator(FlakyLoader(failures=0, delay=0.3))
        snapshots = []
        orchestrator.loading_state.subscribe("codec", snapshots.append)

        await orchestrator.load_module(registry.get("codec"), principal)

        assert any(s.slow_loading for s in snapshots)
        assert orchestrator.loading_state.get_state("codec").slow_loading is False


class TestCircuitWorkflow:
    """The circuit opens under sustained failure and closes after the cooldown."""

    @pytest.mark.asyncio
    async def test_open_then_recover(self, build_orchestrator, registry, principal):
        loader = FlakyLoader(failures=3)
        orchestrator = build_orchestrator(loader)
        descriptor = registry.get("codec")

        with pytest.raises(ConnectionError):
            await orchestrator.load_module(descriptor, principal)
        assert orchestrator.retry_manager.is_circuit_open("codec") is True

        with pytest.raises(CircuitOpenError):
            await orchestrator.load_module(descriptor, principal)
        assert loader.calls == 3

        await asyncio.sleep(0.35)
        assert await orchestrator.load_module(descriptor, principal) == "ok"
        assert loader.calls == 4


class TestRealImports:
    """Loads through the default importlib loader."""

    @pytest.mark.asyncio
    async def test_preload_then_switch(self, build_orchestrator, registry, principal):
        orchestrator = build_orchestrator()

        result = await orchestrator.preload_modules(registry.preloadable(), principal)
        assert result.all_loaded
        assert sorted(orchestrator.get_loaded_modules()) == ["codec", "csv"]
        assert orchestrator.active_module_id is None

        assert await orchestrator.load_module(registry.get("codec"), principal) is json
        assert await orchestrator.load_module(registry.get("csv"), principal) is csv

        assert orchestrator.active_module_id == "csv"
        assert orchestrator.get_loaded_modules() == ["csv"]

    @pytest.mark.asyncio
    async def test_insufficient_role(self, build_orchestrator, registry, principal):
        orchestrator = build_orchestrator()

        with pytest.raises(ModulePermissionError) as exc_info:
            await orchestrator.load_module(registry.get("admin-console"), principal)

        assert "requires Admin access" in str(exc_info.value)
        summary = orchestrator.loading_state.get_summary()
        assert summary.failed_modules == 1
