"""RetryManager: backoff, retry policy, circuit breakers and statistics.

Executes module load functions with exponential backoff and jitter, trips a
per-module circuit breaker under sustained failure, and keeps per-module and
global retry statistics.

RetryManager does not deduplicate concurrent callers. Two concurrent
``execute_with_retry`` sequences for the same module id each record their own
attempts; ModuleLoadOrchestrator guarantees at most one sequence per id.
"""

import asyncio
import logging
import math
import random
import threading
import time
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from feature_loader.core.errors.loading import CircuitOpenError
from feature_loader.core.observability import audit_log
from feature_loader.core.resilience.circuit import CircuitBreaker
from feature_loader.core.resilience.classifier import classify_error
from feature_loader.core.resilience.models import (
    CircuitState,
    ErrorClassification,
    GlobalStats,
    ModuleLoadingError,
    RetryConfig,
    RetryStats,
    SleepFunc,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fractional jitter window around the computed delay (0.25 => 75-125%)
JITTER_RATIO = 0.25

RetryCallback = Callable[[int, float, ModuleLoadingError], None]


class RetryManager:
    """Retry engine with per-module circuit breakers and statistics.

    Example:
        >>> manager = RetryManager(RetryConfig(max_attempts=3, base_delay=0.1))
        >>> module = await manager.execute_with_retry(
        ...     lambda: fetch_module("expenses"), "expenses"
        ... )

    Testing example:
        >>> sleeps = []
        >>> async def fake_sleep(s): sleeps.append(s)
        >>> manager = RetryManager(config, rng=random.Random(42), sleep_func=fake_sleep)
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        sleep_func: Optional[SleepFunc] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Retry configuration (defaults to RetryConfig())
            rng: Injectable Random instance for deterministic jitter
            sleep_func: Injectable async sleep for time control in tests
            clock: Monotonic clock used for circuit breaker cooldowns
        """
        self._config = config or RetryConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep_func or asyncio.sleep
        self._clock = clock or time.monotonic
        self._circuits: Dict[str, CircuitBreaker] = {}
        self._stats: Dict[str, RetryStats] = {}

    @property
    def config(self) -> RetryConfig:
        return self._config

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def calculate_delay(self, attempt: int) -> float:
        """Compute the backoff delay after a failed attempt.

        ``base_delay * backoff_multiplier ** (attempt - 1)``, capped at
        ``max_delay``. With jitter enabled the value is scaled by a uniform
        factor in [0.75, 1.25] and capped again.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            Delay in seconds
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")

        config = self._config
        delay = _capped_backoff(config, attempt - 1)

        if config.jitter and delay > 0:
            jitter_factor = (1.0 - JITTER_RATIO) + (2.0 * JITTER_RATIO * self._rng.random())
            delay = min(delay * jitter_factor, config.max_delay)

        return delay

    def classify_error(self, error: BaseException) -> ErrorClassification:
        return classify_error(error)

    def to_loading_error(
        self,
        error: BaseException,
        module_id: str,
        *,
        user_role: Optional[str] = None,
    ) -> ModuleLoadingError:
        """Build the ModuleLoadingError value for a raw load failure."""
        classification = classify_error(error)
        return ModuleLoadingError.create(
            classification.kind,
            str(error) or type(error).__name__,
            module_id,
            user_role=user_role,
            context={"exception_type": type(error).__name__},
        )

    def should_retry(self, error: ModuleLoadingError, attempt_number: int) -> bool:
        """Decide whether a failed attempt should be retried.

        Args:
            error: Classified failure of the attempt
            attempt_number: 1-based number of the attempt that failed

        Returns:
            True if the error is retryable, attempts remain and the module's
            circuit is not open
        """
        if not error.retryable:
            return False
        if attempt_number >= self._config.max_attempts:
            return False
        return not self.is_circuit_open(error.module_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_with_retry(
        self,
        load_fn: Callable[[], Awaitable[T]],
        module_id: str,
        *,
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        """Execute a load function with retries and circuit breaking.

        Args:
            load_fn: Async function to execute (no arguments; use lambda for args)
            module_id: Module the load belongs to (keys circuit and stats)
            on_retry: Called as ``on_retry(attempt, delay, error)`` before
                each backoff sleep

        Returns:
            Result from the function on success

        Raises:
            CircuitOpenError: If the circuit is open; ``load_fn`` is not called
            Exception: The original exception when the failure is not
                retryable or attempts are exhausted
        """
        breaker = self._get_or_create_circuit(module_id)
        cooldown = self._config.circuit_breaker_cooldown
        if breaker.is_open(cooldown):
            retry_after = breaker.retry_after(cooldown)
            logger.warning(
                "Circuit open for %s, rejecting load (retry in %.1fs)", module_id, retry_after
            )
            raise CircuitOpenError(
                f"Circuit breaker open for module '{module_id}'",
                module_id=module_id,
                retry_after=retry_after,
                last_error=breaker.state.last_error,
            )

        stats = self._get_or_create_stats(module_id)
        had_failure = False
        attempt = 1

        while True:
            try:
                result = await load_fn()
            except Exception as e:
                loading_error = self.to_loading_error(e, module_id)

                # Stats and breaker update together, no await in between
                stats.total_attempts += 1
                stats.failed_attempts += 1
                stats.last_error_kind = loading_error.kind
                breaker.record_failure(loading_error, self._config.circuit_breaker_threshold)
                had_failure = True

                if not self.should_retry(loading_error, attempt):
                    stats.failed_loads += 1
                    stats.last_success = False
                    logger.warning(
                        "Load of %s failed after %d attempt(s): %s (%s)",
                        module_id,
                        attempt,
                        loading_error.message,
                        loading_error.kind.value,
                    )
                    raise

                delay = self.calculate_delay(attempt)
                audit_log(
                    "retry_attempt",
                    module_id=module_id,
                    attempt=attempt + 1,
                    max_attempts=self._config.max_attempts,
                    delay=round(delay, 3),
                    error_kind=loading_error.kind.value,
                    error_message=loading_error.message[:200],
                )
                logger.info(
                    "Retrying %s in %.3fs (attempt %d/%d): %s",
                    module_id,
                    delay,
                    attempt + 1,
                    self._config.max_attempts,
                    loading_error.message,
                )
                if on_retry is not None:
                    on_retry(attempt, delay, loading_error)

                await self._sleep(delay)
                attempt += 1
                continue

            breaker.record_success()
            stats.total_attempts += 1
            stats.successful_loads += 1
            stats.last_success = True
            if had_failure:
                stats.successful_retries += 1
                logger.info("Load of %s succeeded after %d attempts", module_id, attempt)
            return result

    # ------------------------------------------------------------------
    # Circuit breaker inspection
    # ------------------------------------------------------------------

    def is_circuit_open(self, module_id: str) -> bool:
        breaker = self._circuits.get(module_id)
        if breaker is None:
            return False
        return breaker.is_open(self._config.circuit_breaker_cooldown)

    def get_circuit_state(self, module_id: str) -> CircuitState:
        """Get a copy of a module's circuit state (closed default for unknown ids)."""
        breaker = self._circuits.get(module_id)
        if breaker is None:
            return CircuitState()
        breaker.is_open(self._config.circuit_breaker_cooldown)
        state = breaker.state
        return CircuitState(
            status=state.status,
            consecutive_failures=state.consecutive_failures,
            opened_at=state.opened_at,
            last_error=state.last_error,
        )

    def reset_circuit(self, module_id: str) -> None:
        breaker = self._circuits.get(module_id)
        if breaker is not None:
            breaker.reset()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_retry_stats(self, module_id: str) -> RetryStats:
        """Get a snapshot of a module's retry statistics."""
        stats = self._stats.get(module_id)
        if stats is None:
            return RetryStats()
        return RetryStats(**vars(stats))

    def get_global_stats(self) -> GlobalStats:
        """Aggregate statistics across all modules with recorded attempts."""
        result = GlobalStats()
        for stats in self._stats.values():
            result.total_attempts += stats.total_attempts
            result.successful_retries += stats.successful_retries
            result.failed_attempts += stats.failed_attempts
            result.total_modules += 1
            if stats.last_success:
                result.successful_modules += 1
        if result.total_modules:
            result.success_rate = result.successful_modules / result.total_modules
        return result

    def reset_stats(self, module_id: str) -> None:
        self._stats.pop(module_id, None)

    def cleanup(self) -> None:
        """Clear all statistics and circuit breaker state."""
        self._stats.clear()
        self._circuits.clear()

    def update_config(self, new_config: RetryConfig) -> None:
        """Replace the active configuration for subsequent calls.

        Backoff sleeps already in progress keep the delay computed under the
        previous configuration.
        """
        old_config = self._config
        self._config = new_config
        audit_log(
            "config_change",
            old_config=old_config.to_dict(),
            new_config=new_config.to_dict(),
        )
        logger.info("Retry configuration updated: %s", new_config.to_dict())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_or_create_circuit(self, module_id: str) -> CircuitBreaker:
        if module_id not in self._circuits:
            self._circuits[module_id] = CircuitBreaker(module_id, clock=self._clock)
        return self._circuits[module_id]

    def _get_or_create_stats(self, module_id: str) -> RetryStats:
        if module_id not in self._stats:
            self._stats[module_id] = RetryStats()
        return self._stats[module_id]


def _capped_backoff(config: RetryConfig, exponent: int) -> float:
    """``base_delay * backoff_multiplier ** exponent`` capped at ``max_delay``.

    Compared in log space first so huge exponents never overflow.
    """
    if config.base_delay <= 0:
        return 0.0
    headroom = math.log(config.max_delay / config.base_delay)
    if exponent * math.log(config.backoff_multiplier) >= headroom:
        return config.max_delay
    return min(config.base_delay * config.backoff_multiplier**exponent, config.max_delay)


# Module-level singleton
_retry_manager: Optional[RetryManager] = None
_retry_manager_lock = threading.Lock()


def get_retry_manager() -> RetryManager:
    """Get the process-wide RetryManager instance.

    Thread-safe via double-checked locking.
    """
    global _retry_manager
    if _retry_manager is None:
        with _retry_manager_lock:
            if _retry_manager is None:
                _retry_manager = RetryManager()
    return _retry_manager


def reset_retry_manager_for_testing(config: Optional[RetryConfig] = None) -> RetryManager:
    """Replace the process-wide manager with a fresh instance."""
    global _retry_manager
    with _retry_manager_lock:
        _retry_manager = RetryManager(config)
    return _retry_manager
