"""Top-level entry point for loading feature modules.

ModuleLoadOrchestrator ties the permission gate, the retry engine and the
loading state machine together:

    orchestrator = ModuleLoadOrchestrator(RoleHierarchyGate())
    module = await orchestrator.load_module(registry.get("expenses"), principal)

Concurrent requests for the same module share a single in-flight load.
Loading a module with ``activate=True`` makes it the active module; once it
settles, the previously active module is unloaded. A load that settles after
the caller moved on to another module, or after its module was unloaded, is
disregarded: it is not kept and its loading state returns to idle, but the
awaiting callers still receive its outcome.
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from feature_loader.core.authorization import PermissionGate
from feature_loader.core.concurrency import ConcurrencyLimiter, PreloadResult
from feature_loader.core.context import correlation_scope
from feature_loader.core.errors.loading import (
    CircuitOpenError,
    LoadTimeoutError,
    ModulePermissionError,
)
from feature_loader.core.loading import LoadingStateManager
from feature_loader.core.observability import audit_log, get_audit_logger
from feature_loader.core.registry import (
    LoadedModule,
    ModuleDescriptor,
    Principal,
    import_feature_module,
)
from feature_loader.core.resilience import (
    ErrorKind,
    ModuleLoadingError,
    RetryManager,
)

logger = logging.getLogger(__name__)

ModuleLoader = Callable[[ModuleDescriptor], Awaitable[Any]]
UnloadHook = Callable[[str, Any], None]

CACHE_TTL = 30 * 60.0
MAX_CACHED_MODULES = 50


@dataclass
class _InFlightLoad:
    """Bookkeeping for one shared load task."""

    descriptor: ModuleDescriptor
    principal: Principal
    generation: int
    activate: bool
    task: Optional["asyncio.Task[Any]"] = field(default=None, repr=False)
    # Unloaded earlier load of the same module that is still running
    predecessor: Optional["asyncio.Task[Any]"] = field(default=None, repr=False)


class ModuleLoadOrchestrator:
    """Coordinates permission checks, retries and loading state per module.

    Args:
        permission_gate: Decides whether a principal may load a module
        retry_manager: Retry engine (a private RetryManager when omitted)
        loading_state: State machine (a private LoadingStateManager when omitted)
        module_loader: Async function producing the module for a descriptor
        on_unload: Hook called as ``on_unload(module_id, module)`` when a
            loaded module is released
        load_timeout: Seconds one load attempt may take when the descriptor
            sets no ``timeout``; None waits indefinitely
        cache_ttl: Seconds a loaded module is reused before it is reloaded;
            None keeps modules until they are unloaded
        max_cached: Most modules held at once; the oldest inactive module is
            evicted beyond that. None means unbounded
    """

    def __init__(
        self,
        permission_gate: PermissionGate,
        *,
        retry_manager: Optional[RetryManager] = None,
        loading_state: Optional[LoadingStateManager] = None,
        module_loader: ModuleLoader = import_feature_module,
        on_unload: Optional[UnloadHook] = None,
        clock: Optional[Callable[[], float]] = None,
        load_timeout: Optional[float] = None,
        cache_ttl: Optional[float] = CACHE_TTL,
        max_cached: Optional[int] = MAX_CACHED_MODULES,
    ) -> None:
        if max_cached is not None and max_cached < 1:
            raise ValueError(f"max_cached must be >= 1, got {max_cached}")
        self._gate = permission_gate
        self._retry = retry_manager or RetryManager()
        self._state = loading_state or LoadingStateManager()
        self._loader = module_loader
        self._on_unload = on_unload
        self._clock = clock or time.monotonic
        self._load_timeout = load_timeout
        self._cache_ttl = cache_ttl
        self._max_cached = max_cached

        self._in_flight: Dict[str, _InFlightLoad] = {}
        # Unloaded loads still running, so a reload can wait for them
        self._stale: Dict[str, "asyncio.Task[Any]"] = {}
        self._loaded: Dict[str, LoadedModule] = {}
        # Bumped on unload so loads started earlier can tell they are stale
        self._generations: Dict[str, int] = {}
        self._requested_id: Optional[str] = None
        self._active_id: Optional[str] = None

    @property
    def retry_manager(self) -> RetryManager:
        return self._retry

    @property
    def loading_state(self) -> LoadingStateManager:
        return self._state

    @property
    def active_module_id(self) -> Optional[str]:
        """Id of the module currently shown to the user."""
        return self._active_id

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_module(
        self,
        descriptor: ModuleDescriptor,
        principal: Principal,
        *,
        activate: bool = True,
        use_cache: bool = True,
    ) -> Any:
        """Load a feature module, joining an in-flight load of the same id.

        Args:
            descriptor: Module to load
            principal: User requesting it
            activate: Make the module the active one and unload the
                previously active module once it has loaded
            use_cache: Return an already-loaded module without reloading it

        Returns:
            Whatever the module loader produced

        Raises:
            ModulePermissionError: If the permission gate denies access
            CircuitOpenError: If the module's circuit breaker is open
            Exception: The loader's original exception once retries are
                exhausted or the failure is not retryable
        """
        module_id = descriptor.id
        self._expire(module_id)
        if activate:
            self._requested_id = module_id

        loaded = self._loaded.get(module_id)
        if use_cache and loaded is not None and module_id not in self._in_flight:
            logger.debug("Module %s already loaded", module_id)
            if activate:
                self._activate(module_id)
            return loaded.module

        # No await between lookup and registration
        entry = self._in_flight.get(module_id)
        if entry is None:
            entry = _InFlightLoad(
                descriptor=descriptor,
                principal=principal,
                generation=self._generations.get(module_id, 0),
                activate=activate,
                predecessor=self._stale.get(module_id),
            )
            entry.task = asyncio.create_task(self._run_load(entry), name=f"load:{module_id}")
            entry.task.add_done_callback(_retrieve_exception)
            self._in_flight[module_id] = entry
        else:
            logger.debug("Joining in-flight load of %s", module_id)
            if activate:
                entry.activate = True

        return await asyncio.shield(entry.task)

    async def preload_modules(
        self,
        descriptors: Iterable[ModuleDescriptor],
        principal: Principal,
        *,
        max_concurrent: int = 3,
    ) -> PreloadResult:
        """Load modules in the background without activating them.

        Failures are collected per module id in the returned PreloadResult.
        """
        limiter = ConcurrencyLimiter(max_concurrent=max_concurrent, name="preload")
        jobs = {
            descriptor.id: functools.partial(
                self.load_module, descriptor, principal, activate=False
            )
            for descriptor in descriptors
        }
        result = await limiter.run_all(jobs)
        logger.info(
            "Preloaded %d/%d modules", result.stats.loaded, result.stats.requested
        )
        return result

    async def _run_load(self, entry: _InFlightLoad) -> Any:
        descriptor = entry.descriptor
        principal = entry.principal
        module_id = descriptor.id

        with correlation_scope(principal_id=principal.user_id):
            try:
                audit_log(
                    "load_started",
                    module_id=module_id,
                    role=principal.role,
                    activate=entry.activate,
                )

                if not await self._gate.validate_module_access(descriptor, principal):
                    error = self._gate.create_permission_error(descriptor, principal)
                    get_audit_logger().permission_denied(
                        module_id,
                        role=principal.role,
                        required_role=descriptor.required_role,
                    )
                    self._revoke(module_id)
                    self._settle_error(entry, error)
                    raise ModulePermissionError(error)

                self._state.set_loading(module_id, message=f"Loading {descriptor.name}...")
                started = self._clock()

                if entry.predecessor is not None:
                    # One loader call per module at a time
                    logger.debug("Waiting for unloaded load of %s to finish", module_id)
                    await asyncio.wait({entry.predecessor})

                def on_retry(attempt: int, delay: float, error: ModuleLoadingError) -> None:
                    if self._stale_reason(entry) is None:
                        self._state.record_retry(module_id, attempt)

                try:
                    module = await self._retry.execute_with_retry(
                        lambda: self._attempt(descriptor),
                        module_id,
                        on_retry=on_retry,
                    )
                except CircuitOpenError as e:
                    self._settle_error(entry, _circuit_open_error(e, module_id, principal))
                    raise
                except Exception as e:
                    error = self._retry.to_loading_error(e, module_id, user_role=principal.role)
                    self._settle_error(entry, error)
                    raise

                self._settle_success(entry, module, self._clock() - started)
                return module
            except asyncio.CancelledError:
                if self._stale_reason(entry) is None:
                    self._state.reset(module_id)
                raise
            finally:
                if self._in_flight.get(module_id) is entry:
                    del self._in_flight[module_id]
                if self._stale.get(module_id) is entry.task:
                    del self._stale[module_id]

    async def _attempt(self, descriptor: ModuleDescriptor) -> Any:
        """One loader call, bounded by the descriptor's or the default timeout.

        Raises:
            LoadTimeoutError: If the call outlives its time limit
        """
        timeout = descriptor.timeout if descriptor.timeout is not None else self._load_timeout
        if timeout is None:
            return await self._loader(descriptor)

        try:
            return await asyncio.wait_for(self._loader(descriptor), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise LoadTimeoutError(descriptor.id, timeout) from e

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _stale_reason(self, entry: _InFlightLoad) -> Optional[str]:
        module_id = entry.descriptor.id
        if self._generations.get(module_id, 0) != entry.generation:
            return "unloaded"
        if entry.activate and self._requested_id != module_id:
            return "switched"
        return None

    def _disregard(self, entry: _InFlightLoad, reason: str) -> None:
        module_id = entry.descriptor.id
        logger.info("Disregarding load of %s (%s)", module_id, reason)
        audit_log("load_disregarded", module_id=module_id, reason=reason)
        # After an unload the state already went back to idle and may now
        # belong to a newer load
        if reason == "switched":
            self._state.reset(module_id)

    def _settle_success(self, entry: _InFlightLoad, module: Any, duration: float) -> None:
        module_id = entry.descriptor.id
        reason = self._stale_reason(entry)
        if reason is not None:
            self._disregard(entry, reason)
            return

        self._state.set_success(module_id)
        self._loaded[module_id] = LoadedModule(
            descriptor=entry.descriptor,
            module=module,
            load_duration=duration,
            cached_at=self._clock(),
        )
        audit_log("load_succeeded", module_id=module_id, duration=round(duration, 6))
        logger.info("Loaded module %s in %.3fs", module_id, duration)
        if entry.activate:
            self._activate(module_id)
        self._evict_over_capacity(keep=module_id)

    def _settle_error(self, entry: _InFlightLoad, error: ModuleLoadingError) -> None:
        module_id = entry.descriptor.id
        reason = self._stale_reason(entry)
        if reason is not None:
            self._disregard(entry, reason)
            return

        self._state.set_error(module_id, error)
        audit_log(
            "load_failed",
            module_id=module_id,
            error_kind=error.kind.value,
            error_message=error.message[:200],
            retryable=error.retryable,
        )

    def _activate(self, module_id: str) -> None:
        previous = self._active_id
        self._active_id = module_id
        if previous is not None and previous != module_id:
            logger.info("Switching active module %s -> %s", previous, module_id)
            self.unload_module(previous)

    # ------------------------------------------------------------------
    # Unloading
    # ------------------------------------------------------------------

    def unload_module(self, module_id: str, *, reason: str = "requested") -> bool:
        """Release a module and mark any in-flight load of it as stale.

        A stale load keeps running; the next load of the same module waits
        for it before calling the loader again.

        Returns:
            True if the module was loaded or loading
        """
        loaded = self._release(module_id)
        entry = self._in_flight.pop(module_id, None)
        if entry is not None and entry.task is not None and not entry.task.done():
            self._stale[module_id] = entry.task
        self._generations[module_id] = self._generations.get(module_id, 0) + 1
        if self._requested_id == module_id:
            self._requested_id = None

        self._state.reset(module_id)
        if loaded is None and entry is None:
            return False

        audit_log(
            "module_unloaded",
            module_id=module_id,
            was_loaded=loaded is not None,
            was_loading=entry is not None,
            reason=reason,
        )
        return True

    def _release(self, module_id: str) -> Optional[LoadedModule]:
        loaded = self._loaded.pop(module_id, None)
        if self._active_id == module_id:
            self._active_id = None
        if loaded is not None and self._on_unload is not None:
            try:
                self._on_unload(module_id, loaded.module)
            except Exception:
                logger.exception("Unload hook failed for module %s", module_id)
        return loaded

    def _revoke(self, module_id: str) -> None:
        """Drop a loaded module the current principal may no longer use.

        The loading state is left for the caller to record the denial.
        """
        if self._release(module_id) is not None:
            logger.info("Released module %s after access was denied", module_id)
            audit_log(
                "module_unloaded",
                module_id=module_id,
                was_loaded=True,
                was_loading=False,
                reason="permission_denied",
            )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _is_expired(self, loaded: LoadedModule) -> bool:
        return self._cache_ttl is not None and self._clock() - loaded.cached_at >= self._cache_ttl

    def _expire(self, module_id: str) -> None:
        loaded = self._loaded.get(module_id)
        if loaded is not None and module_id not in self._in_flight and self._is_expired(loaded):
            logger.debug("Cached module %s expired", module_id)
            self.unload_module(module_id, reason="expired")

    def evict_expired(self) -> List[str]:
        """Unload every cached module older than the cache TTL.

        Returns:
            Ids of the evicted modules
        """
        expired = [
            module_id for module_id, loaded in self._loaded.items() if self._is_expired(loaded)
        ]
        for module_id in expired:
            self.unload_module(module_id, reason="expired")
        return expired

    def _evict_over_capacity(self, keep: str) -> None:
        if self._max_cached is None:
            return
        while len(self._loaded) > self._max_cached:
            candidates = [
                loaded
                for module_id, loaded in self._loaded.items()
                if module_id not in (keep, self._active_id) and module_id not in self._in_flight
            ]
            if not candidates:
                return
            oldest = min(candidates, key=lambda loaded: loaded.cached_at)
            logger.info("Evicting cached module %s", oldest.descriptor.id)
            self.unload_module(oldest.descriptor.id, reason="evicted")

    def cleanup(self) -> None:
        """Unload every module and cancel in-flight loads.

        Injected collaborators keep their own statistics and subscribers.
        """
        tasks = [entry.task for entry in self._in_flight.values() if entry.task is not None]
        tasks.extend(self._stale.values())
        for module_id in set(self._loaded) | set(self._in_flight):
            self.unload_module(module_id)
        for task in tasks:
            if not task.done():
                task.cancel()
        self._requested_id = None
        self._active_id = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_loading(self, module_id: str) -> bool:
        return module_id in self._in_flight

    def get_loaded_modules(self) -> List[str]:
        return list(self._loaded)

    def get_loaded_module(self, module_id: str) -> Optional[LoadedModule]:
        return self._loaded.get(module_id)

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the loader for diagnostics."""
        return {
            "active_module_id": self._active_id,
            "loaded_modules": [loaded.to_dict() for loaded in self._loaded.values()],
            "in_flight_modules": list(self._in_flight),
            "retry_stats": self._retry.get_global_stats().to_dict(),
            "loading_summary": self._state.get_summary().to_dict(),
            "retry_config": self._retry.config.to_dict(),
        }


def _circuit_open_error(
    error: CircuitOpenError, module_id: str, principal: Principal
) -> ModuleLoadingError:
    kind = error.last_error.kind if error.last_error is not None else ErrorKind.MODULE_ERROR
    return ModuleLoadingError.create(
        kind,
        str(error),
        module_id,
        user_role=principal.role,
        context={"circuit_open": True, "retry_after": error.retry_after},
    )


def _retrieve_exception(task: "asyncio.Task[Any]") -> None:
    # Callers may all have been cancelled; avoid "exception never retrieved"
    if not task.cancelled():
        task.exception()
