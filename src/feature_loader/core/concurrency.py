"""
Bounded concurrency for background module preloading.

``ModuleLoadOrchestrator.preload_modules`` warms several feature modules at
once after login; ConcurrencyLimiter keeps at most ``max_concurrent`` of
those loads in flight.

Example:
    from feature_loader.core.concurrency import ConcurrencyLimiter

    limiter = ConcurrencyLimiter(max_concurrent=3, name="preload")
    result = await limiter.run_all({d.id: partial(load, d) for d in descriptors})
    for module_id, error in result.errors.items():
        ...
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[Any]]


@dataclass
class PreloadStats:
    """Counters for one batch of bounded loads.

    ``timed_out`` loads are also counted in ``failed``.
    """

    requested: int = 0
    loaded: int = 0
    failed: int = 0
    timed_out: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested": self.requested,
            "loaded": self.loaded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "elapsed_seconds": round(self.elapsed_seconds, 6),
        }


@dataclass
class PreloadResult:
    """Outcome of a batch, keyed by module id."""

    modules: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)
    stats: PreloadStats = field(default_factory=PreloadStats)

    @property
    def all_loaded(self) -> bool:
        return not self.errors

    def failed_ids(self) -> List[str]:
        return list(self.errors)


class ConcurrencyLimiter:
    """Semaphore-bounded runner for module load jobs.

    Jobs are zero-argument async callables; a job's coroutine is only
    created once a slot is free.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        *,
        name: str = "",
        timeout: Optional[float] = None,
    ):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.name = name or "<unnamed>"
        self.timeout = timeout
        self._slots = asyncio.Semaphore(max_concurrent)
        self._active = 0
        self._peak = 0

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def peak_active(self) -> int:
        """Most jobs that ever ran at the same time."""
        return self._peak

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._slots:
            self._active += 1
            self._peak = max(self._peak, self._active)
            try:
                yield
            finally:
                self._active -= 1

    async def run(self, job: Callable[[], Awaitable[T]]) -> T:
        """Run one job inside a slot.

        Raises:
            asyncio.TimeoutError: If the job outlives the limiter's timeout
        """
        async with self.slot():
            if self.timeout:
                return await asyncio.wait_for(job(), timeout=self.timeout)
            return await job()

    async def run_all(self, jobs: Mapping[str, Job]) -> PreloadResult:
        """Run every job, collecting failures instead of raising them.

        Args:
            jobs: Module id to load job

        Returns:
            PreloadResult with the loaded modules and the per-id errors
        """
        started = time.monotonic()
        result = PreloadResult(stats=PreloadStats(requested=len(jobs)))

        async def run_one(module_id: str, job: Job) -> None:
            try:
                result.modules[module_id] = await self.run(job)
                result.stats.loaded += 1
            except asyncio.TimeoutError as e:
                result.errors[module_id] = e
                result.stats.timed_out += 1
                result.stats.failed += 1
            except Exception as e:
                result.errors[module_id] = e
                result.stats.failed += 1

        await asyncio.gather(*(run_one(module_id, job) for module_id, job in jobs.items()))

        result.stats.elapsed_seconds = time.monotonic() - started
        logger.debug(
            "Limiter %s loaded %d/%d in %.3fs",
            self.name,
            result.stats.loaded,
            result.stats.requested,
            result.stats.elapsed_seconds,
        )
        return result
