"""Per-module loading state machine with pub/sub notifications.

LoadingStateManager tracks an observable ``idle -> loading -> success|error``
lifecycle for every module id and flags loads that stay pending longer than
the slow-loading threshold. Subscribers are called synchronously with the new
snapshot on every change.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from feature_loader.core.errors.loading import InvalidStateTransitionError
from feature_loader.core.loading.models import (
    ALLOWED_TRANSITIONS,
    SLOW_LOADING_THRESHOLD,
    LoadingState,
    LoadingStatus,
    LoadingSummary,
    StateCallback,
    Unsubscribe,
)
from feature_loader.core.observability import audit_log
from feature_loader.core.resilience.models import ModuleLoadingError

logger = logging.getLogger(__name__)

SLOW_LOADING_MESSAGE = "Loading is taking longer than usual..."


class LoadingStateManager:
    """Observable loading state for feature modules.

    Example:
        >>> states = LoadingStateManager()
        >>> unsubscribe = states.subscribe("expenses", render_spinner)
        >>> states.set_loading("expenses")
        >>> states.set_success("expenses")
        >>> unsubscribe()

    Slow-loading detection arms a ``loop.call_later`` timer when an event
    loop is running. Without a loop, call :meth:`check_slow_loading`
    periodically instead.
    """

    def __init__(
        self,
        *,
        slow_threshold: float = SLOW_LOADING_THRESHOLD,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._slow_threshold = slow_threshold
        self._clock = clock or time.monotonic
        self._states: Dict[str, LoadingState] = {}
        self._subscribers: Dict[str, List[StateCallback]] = {}
        self._global_subscribers: List[StateCallback] = []
        self._slow_timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def slow_threshold(self) -> float:
        return self._slow_threshold

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def set_loading(self, module_id: str, *, message: Optional[str] = None) -> LoadingState:
        """Start a load: ``idle|success|error -> loading``.

        Raises:
            InvalidStateTransitionError: If the module is already loading
        """
        current = self.get_state(module_id)
        self._check_transition(current, LoadingStatus.LOADING)
        self._cancel_slow_timer(module_id)

        start_time = self._clock()
        state = LoadingState(
            module_id=module_id,
            status=LoadingStatus.LOADING,
            start_time=start_time,
            message=message or f"Loading {module_id}...",
        )
        self._set_state(state)
        self._arm_slow_timer(module_id, start_time)
        return state

    def set_success(self, module_id: str, *, message: Optional[str] = None) -> LoadingState:
        """Settle a load successfully: ``loading -> success``."""
        current = self.get_state(module_id)
        self._check_transition(current, LoadingStatus.SUCCESS)
        self._cancel_slow_timer(module_id)

        state = replace(
            current,
            status=LoadingStatus.SUCCESS,
            duration=self._elapsed(current),
            error=None,
            progress=100,
            slow_loading=False,
            message=message or "Loaded",
        )
        self._set_state(state)
        return state

    def set_error(self, module_id: str, error: ModuleLoadingError) -> LoadingState:
        """Record a failure; allowed from every status."""
        current = self.get_state(module_id)
        self._check_transition(current, LoadingStatus.ERROR)
        self._cancel_slow_timer(module_id)

        state = replace(
            current,
            status=LoadingStatus.ERROR,
            duration=self._elapsed(current),
            error=error,
            slow_loading=False,
            message=error.message,
        )
        self._set_state(state)
        return state

    def reset(self, module_id: str) -> LoadingState:
        """Return a module to ``idle`` from any status."""
        self._cancel_slow_timer(module_id)
        state = LoadingState(module_id=module_id)
        if module_id in self._states:
            self._set_state(state)
        return state

    # ------------------------------------------------------------------
    # In-flight updates (no status change)
    # ------------------------------------------------------------------

    def update_progress(
        self,
        module_id: str,
        progress: int,
        *,
        message: Optional[str] = None,
    ) -> Optional[LoadingState]:
        """Update advisory progress of a loading module (clamped to 0-100).

        Ignored unless the module is currently loading.
        """
        current = self._states.get(module_id)
        if current is None or not current.is_loading:
            logger.debug("Ignoring progress update for %s: not loading", module_id)
            return None

        state = replace(
            current,
            progress=max(0, min(100, int(progress))),
            message=message if message is not None else current.message,
        )
        self._set_state(state)
        return state

    def record_retry(self, module_id: str, attempt: int) -> Optional[LoadingState]:
        """Record that a loading module is being retried."""
        current = self._states.get(module_id)
        if current is None or not current.is_loading:
            return None

        state = replace(
            current,
            retry_count=attempt,
            message=f"Retrying {module_id} (retry {attempt})...",
        )
        self._set_state(state)
        return state

    def check_slow_loading(self) -> List[str]:
        """Flag every load pending longer than the threshold.

        Returns:
            Module ids newly flagged as slow by this call
        """
        now = self._clock()
        flagged = []
        for module_id, state in list(self._states.items()):
            if (
                state.is_loading
                and not state.slow_loading
                and state.start_time is not None
                and now - state.start_time > self._slow_threshold
            ):
                self._mark_slow(module_id, state.start_time)
                flagged.append(module_id)
        return flagged

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self, module_id: str) -> LoadingState:
        """Get a module's snapshot (an idle snapshot for unknown ids)."""
        return self._states.get(module_id) or LoadingState(module_id=module_id)

    def get_all_states(self) -> Dict[str, LoadingState]:
        return dict(self._states)

    def is_loading(self, module_id: str) -> bool:
        return self.get_state(module_id).is_loading

    def get_summary(self) -> LoadingSummary:
        """Count tracked modules by status."""
        states = list(self._states.values())
        return LoadingSummary(
            total_modules=len(states),
            loading_modules=sum(1 for s in states if s.status == LoadingStatus.LOADING),
            completed_modules=sum(1 for s in states if s.status == LoadingStatus.SUCCESS),
            failed_modules=sum(1 for s in states if s.status == LoadingStatus.ERROR),
            slow_modules=sum(1 for s in states if s.slow_loading),
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, module_id: str, callback: StateCallback) -> Unsubscribe:
        """Register a callback for one module's state changes.

        Returns:
            A function that removes the callback (safe to call twice)
        """
        self._subscribers.setdefault(module_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(module_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[module_id]

        return unsubscribe

    def subscribe_all(self, callback: StateCallback) -> Unsubscribe:
        """Register a callback for every module's state changes."""
        self._global_subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._global_subscribers:
                self._global_subscribers.remove(callback)

        return unsubscribe

    def cleanup(self) -> None:
        """Cancel timers and drop all states and subscribers."""
        for handle in self._slow_timers.values():
            handle.cancel()
        self._slow_timers.clear()
        self._states.clear()
        self._subscribers.clear()
        self._global_subscribers.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_transition(self, current: LoadingState, target: LoadingStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidStateTransitionError(
                current.module_id, current.status.value, target.value
            )

    def _elapsed(self, state: LoadingState) -> Optional[float]:
        if state.status != LoadingStatus.LOADING or state.start_time is None:
            return None
        return max(0.0, self._clock() - state.start_time)

    def _set_state(self, state: LoadingState) -> None:
        self._states[state.module_id] = state
        self._notify(state)

    def _notify(self, state: LoadingState) -> None:
        callbacks = list(self._subscribers.get(state.module_id, ())) + list(
            self._global_subscribers
        )
        for callback in callbacks:
            try:
                callback(state)
            except Exception:
                logger.exception("Loading state subscriber failed for %s", state.module_id)

    def _arm_slow_timer(self, module_id: str, start_time: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._slow_timers[module_id] = loop.call_later(
            self._slow_threshold, self._mark_slow, module_id, start_time
        )

    def _cancel_slow_timer(self, module_id: str) -> None:
        handle = self._slow_timers.pop(module_id, None)
        if handle is not None:
            handle.cancel()

    def _mark_slow(self, module_id: str, start_time: float) -> None:
        self._slow_timers.pop(module_id, None)
        current = self._states.get(module_id)
        # Only the load that armed the timer may be flagged
        if (
            current is None
            or not current.is_loading
            or current.slow_loading
            or current.start_time != start_time
        ):
            return

        logger.info("Module %s is loading slowly (> %.1fs)", module_id, self._slow_threshold)
        audit_log("slow_loading", module_id=module_id, threshold=self._slow_threshold)
        self._set_state(replace(current, slow_loading=True, message=SLOW_LOADING_MESSAGE))
