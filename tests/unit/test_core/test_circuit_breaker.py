"""Unit tests for the per-module CircuitBreaker."""

import pytest

from feature_loader.core.resilience import (
    CircuitBreaker,
    CircuitStatus,
    ErrorKind,
    ModuleLoadingError,
)


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("expenses", clock=clock)


@pytest.fixture
def network_error():
    return ModuleLoadingError.create(ErrorKind.NETWORK_ERROR, "Failed to fetch", "expenses")


class TestCircuitBreaker:
    """Tests for tripping, cooldown and recovery."""

    def test_starts_closed(self, breaker):
        assert breaker.is_open(60.0) is False
        assert breaker.failure_count == 0
        assert breaker.retry_after(60.0) == 0.0

    def test_trips_at_threshold(self, breaker, network_error):
        assert breaker.record_failure(network_error, 3) is False
        assert breaker.record_failure(network_error, 3) is False
        assert breaker.record_failure(network_error, 3) is True
        assert breaker.is_open(60.0) is True
        assert breaker.state.last_error is network_error

    def test_failures_past_threshold_do_not_retrip(self, breaker, network_error):
        breaker.record_failure(network_error, 1)
        assert breaker.record_failure(network_error, 1) is False
        assert breaker.failure_count == 2

    def test_retry_after_counts_down(self, breaker, network_error, clock):
        breaker.record_failure(network_error, 1)
        clock.advance(45.0)
        assert breaker.retry_after(60.0) == pytest.approx(15.0)

    def test_cooldown_closes_and_clears_failures(self, breaker, network_error, clock):
        """Closing after the cooldown starts the failure count from zero."""
        breaker.record_failure(network_error, 2)
        breaker.record_failure(network_error, 2)
        clock.advance(60.0)

        assert breaker.is_open(60.0) is False
        assert breaker.state.status == CircuitStatus.CLOSED
        assert breaker.failure_count == 0
        assert breaker.record_failure(network_error, 2) is False

    def test_success_closes_and_resets(self, breaker, network_error):
        breaker.record_failure(network_error, 1)
        breaker.record_success()

        assert breaker.state.status == CircuitStatus.CLOSED
        assert breaker.failure_count == 0
        assert breaker.state.last_error is None

    def test_success_breaks_consecutive_run(self, breaker, network_error):
        breaker.record_failure(network_error, 3)
        breaker.record_failure(network_error, 3)
        breaker.record_success()
        assert breaker.record_failure(network_error, 3) is False

    def test_reset(self, breaker, network_error):
        breaker.record_failure(network_error, 1)
        breaker.reset()
        assert breaker.is_open(60.0) is False
        assert breaker.state.opened_at is None
