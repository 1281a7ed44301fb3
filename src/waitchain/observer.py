"""Per-scope change observation with coalescing and deferred teardown.

One :class:`ScopeObserver` exists per observed scope.  It installs listeners
through the ``TreeBinding`` while executions are pending on it, and fans change
signals out as ``Execution.check()`` calls:

- immediate signals (load finished) re-check synchronously;
- deferred signals (mutations, sub-resource load/error) set a flag and arm a
  zero-delay timer, so a burst within one loop iteration yields one re-check.

Listener removal is itself deferred so back-to-back expressions on the same
scope do not churn listeners.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any

from waitchain.timer import Timer, TimerBackend

if TYPE_CHECKING:
    from waitchain.binding import TreeBinding
    from waitchain.execution import Execution

logger = logging.getLogger(__name__)


class ScopeObserver:
    """Debounced change notifier for a single scope."""

    def __init__(
        self,
        scope: Any,
        binding: TreeBinding,
        timer_backend: TimerBackend,
        *,
        coalesce_delay_ms: float = 0,
        teardown_delay_ms: float = 0,
    ) -> None:
        self._scope_ref = weakref.ref(scope)
        self._binding = binding
        self.pending_executions: set[Execution] = set()
        self.listeners_installed = False
        self.has_coalesced_change = False
        self.teardown_timer = Timer(teardown_delay_ms, self._handle_teardown, timer_backend)
        self.coalesce_timer = Timer(coalesce_delay_ms, self._handle_deferrals, timer_backend)

    @property
    def scope(self) -> Any:
        return self._scope_ref()

    @property
    def has_pending_executions(self) -> bool:
        return bool(self.pending_executions)

    def register(self, execution: Execution) -> None:
        self.pending_executions.add(execution)
        self.install_listeners()

    def unregister(self, execution: Execution) -> None:
        self.pending_executions.discard(execution)
        if not self.pending_executions:
            self.teardown_timer.reschedule()

    def install_listeners(self) -> None:
        self.teardown_timer.cancel()
        if self.listeners_installed:
            return

        scope = self.scope
        if scope is None or not self._binding.is_alive(scope):
            logger.debug("Not observing a scope that is no longer alive")
            return

        self._binding.add_listeners(scope, self._handle_change, self._handle_change_deferred)
        self.listeners_installed = True
        logger.debug("Installed change listeners on %s", self._binding.describe(scope))

    def remove_listeners(self) -> None:
        if not self.listeners_installed:
            return

        self.teardown_timer.cancel()
        self.coalesce_timer.cancel()
        self.has_coalesced_change = False
        self.listeners_installed = False

        scope = self.scope
        if scope is not None:
            self._binding.remove_listeners(
                scope, self._handle_change, self._handle_change_deferred
            )
            logger.debug("Removed change listeners from %s", self._binding.describe(scope))

    def run_checks(self) -> None:
        self.has_coalesced_change = False
        self.coalesce_timer.cancel()

        for execution in list(self.pending_executions):
            # an earlier check in this loop may have fulfilled and unregistered it
            if execution in self.pending_executions:
                execution.check()

    def run_checks_deferred(self) -> None:
        self.has_coalesced_change = True
        self.coalesce_timer.schedule()

    def drain_deferrals(self) -> None:
        self._handle_deferrals()

    def _handle_change(self) -> None:
        self.run_checks()

    def _handle_change_deferred(self) -> None:
        self.run_checks_deferred()

    def _handle_deferrals(self) -> None:
        if self.has_coalesced_change:
            self.has_coalesced_change = False
            self.run_checks()

    def _handle_teardown(self) -> None:
        if not self.pending_executions:
            self.remove_listeners()


class ScopeObserverRegistry:
    """Scope → :class:`ScopeObserver`, keyed weakly so scopes can be collected."""

    def __init__(
        self,
        binding: TreeBinding,
        timer_backend: TimerBackend,
        *,
        coalesce_delay_ms: float = 0,
        teardown_delay_ms: float = 0,
    ) -> None:
        self._binding = binding
        self._timer_backend = timer_backend
        self._coalesce_delay_ms = coalesce_delay_ms
        self._teardown_delay_ms = teardown_delay_ms
        self._observers: weakref.WeakKeyDictionary[Any, ScopeObserver] = (
            weakref.WeakKeyDictionary()
        )

    def observer_for(self, scope: Any) -> ScopeObserver | None:
        return self._observers.get(scope)

    def _get_or_create(self, scope: Any) -> ScopeObserver:
        observer = self._observers.get(scope)
        if observer is None:
            observer = ScopeObserver(
                scope,
                self._binding,
                self._timer_backend,
                coalesce_delay_ms=self._coalesce_delay_ms,
                teardown_delay_ms=self._teardown_delay_ms,
            )
            self._observers[scope] = observer
        return observer

    def register_execution(self, scope: Any, execution: Execution) -> None:
        self._get_or_create(scope).register(execution)

    def unregister_execution(self, scope: Any, execution: Execution) -> None:
        observer = self._observers.get(scope)
        if observer is not None:
            observer.unregister(execution)

    def run_checks(self, scope: Any) -> None:
        observer = self._observers.get(scope)
        if observer is not None:
            observer.run_checks()

    def run_checks_deferred(self, scope: Any) -> None:
        observer = self._observers.get(scope)
        if observer is not None:
            observer.run_checks_deferred()

    def drain_deferrals(self, scope: Any) -> None:
        observer = self._observers.get(scope)
        if observer is not None:
            observer.drain_deferrals()
