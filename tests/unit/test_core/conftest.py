"""Shared fixtures for core unit tests."""

import random
from typing import Any, Callable, List

import pytest

from feature_loader.core.registry import ModuleDescriptor, Principal
from feature_loader.core.resilience import RetryConfig, RetryManager


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedLoader:
    """Async load function that plays back a script of outcomes.

    Exceptions in the script are raised, anything else is returned. The last
    outcome repeats once the script is exhausted.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, *args: Any) -> Any:
        index = min(self.calls, len(self.outcomes) - 1)
        self.calls += 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps() -> List[float]:
    """Delays passed to the fake sleep, in call order."""
    return []


@pytest.fixture
def fake_sleep(sleeps) -> Callable:
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def retry_config():
    return RetryConfig(
        max_attempts=3,
        base_delay=0.1,
        max_delay=2.0,
        backoff_multiplier=2.0,
        jitter=False,
        circuit_breaker_threshold=5,
        circuit_breaker_cooldown=60.0,
    )


@pytest.fixture
def retry_manager(retry_config, fake_sleep, clock):
    return RetryManager(
        retry_config,
        rng=random.Random(42),
        sleep_func=fake_sleep,
        clock=clock,
    )


@pytest.fixture
def make_descriptor():
    def _make(module_id: str = "expenses", required_role: str = "employee", **kwargs):
        return ModuleDescriptor(
            id=module_id,
            name=kwargs.pop("name", module_id.replace("-", " ").title()),
            required_role=required_role,
            **kwargs,
        )

    return _make


@pytest.fixture
def manager_principal():
    return Principal(user_id="u-100", role="manager")


@pytest.fixture
def cashier_principal():
    return Principal(user_id="u-200", role="cashier")


@pytest.fixture
def scripted():
    """Factory for ScriptedLoader instances."""
    return ScriptedLoader
