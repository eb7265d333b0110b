"""Domain-specific configuration dataclasses.

Mutable settings read from the ``[retry]`` and ``[loading]`` TOML sections
and environment overrides. They are converted into the immutable runtime
objects (``RetryConfig``) once loading is complete.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from feature_loader.config.parsing import _parse_bool
from feature_loader.core.loading.models import SLOW_LOADING_THRESHOLD
from feature_loader.core.orchestrator import CACHE_TTL, MAX_CACHED_MODULES
from feature_loader.core.resilience.models import RetryConfig


@dataclass
class RetrySettings:
    """Retry and circuit breaker settings (seconds for all durations).

    Attributes:
        max_attempts: Attempts per load, including the first
        base_delay: Delay before the first retry
        max_delay: Upper bound for any single delay
        backoff_multiplier: Delay growth factor per attempt
        jitter: Randomize delays by +/-25%
        circuit_breaker_threshold: Consecutive failures that open the circuit
        circuit_breaker_cooldown: Seconds the circuit stays open
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True
    circuit_breaker_threshold: int = 5
    circuit_breaker_cooldown: float = 60.0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "RetrySettings":
        """Create settings from TOML dict (typically [retry] section).

        Raises:
            TypeError, ValueError: If a value cannot be converted
        """
        defaults = cls()
        return cls(
            max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
            base_delay=float(data.get("base_delay", defaults.base_delay)),
            max_delay=float(data.get("max_delay", defaults.max_delay)),
            backoff_multiplier=float(
                data.get("backoff_multiplier", defaults.backoff_multiplier)
            ),
            jitter=_parse_bool(data.get("jitter", defaults.jitter)),
            circuit_breaker_threshold=int(
                data.get("circuit_breaker_threshold", defaults.circuit_breaker_threshold)
            ),
            circuit_breaker_cooldown=float(
                data.get("circuit_breaker_cooldown", defaults.circuit_breaker_cooldown)
            ),
        )

    def to_retry_config(self) -> RetryConfig:
        """Build the immutable runtime config.

        Raises:
            ValueError: If the settings violate RetryConfig's invariants
        """
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
            jitter=self.jitter,
            circuit_breaker_threshold=self.circuit_breaker_threshold,
            circuit_breaker_cooldown=self.circuit_breaker_cooldown,
        )


@dataclass
class LoadingSettings:
    """Loading, caching and preloading settings.

    Attributes:
        slow_threshold: Seconds before a pending load is flagged as slow
        preload_concurrency: Maximum modules preloaded at the same time
        load_timeout: Seconds one load attempt may take unless the module
            sets its own ``timeout``; unset waits indefinitely
        cache_ttl: Seconds a loaded module is reused before reloading
        max_cached: Most modules kept loaded at once
    """

    slow_threshold: float = SLOW_LOADING_THRESHOLD
    preload_concurrency: int = 3
    load_timeout: Optional[float] = None
    cache_ttl: float = CACHE_TTL
    max_cached: int = MAX_CACHED_MODULES

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "LoadingSettings":
        """Create settings from TOML dict (typically [loading] section).

        Raises:
            TypeError, ValueError: If a value cannot be converted or is out of range
        """
        defaults = cls()
        settings = cls(
            slow_threshold=float(data.get("slow_threshold", defaults.slow_threshold)),
            preload_concurrency=int(data.get("preload_concurrency", defaults.preload_concurrency)),
            load_timeout=(
                float(data["load_timeout"]) if "load_timeout" in data else defaults.load_timeout
            ),
            cache_ttl=float(data.get("cache_ttl", defaults.cache_ttl)),
            max_cached=int(data.get("max_cached", defaults.max_cached)),
        )
        for name in ("slow_threshold", "cache_ttl"):
            if getattr(settings, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(settings, name)}")
        if settings.load_timeout is not None and settings.load_timeout <= 0:
            raise ValueError(f"load_timeout must be > 0, got {settings.load_timeout}")
        for name in ("preload_concurrency", "max_cached"):
            if getattr(settings, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(settings, name)}")
        return settings
