"""Per-invocation state machine for a wait expression.

NOT_STARTED → RUNNING → FULFILLED.  ``first_check`` starts the clock and arms
one timer per distinct deadline; every later change signal or deadline re-runs
the whole chain through ``check``.  Fulfilment happens exactly once and always
releases timers and scope registrations.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING, Any

from waitchain.errors import IllegalStateError, WaitTimeoutError
from waitchain.expression import RESET_START_TIME
from waitchain.result import CheckResult, Pending, Success
from waitchain.steps import CheckMeta
from waitchain.timer import Timer, TimerBackend

if TYPE_CHECKING:
    from waitchain.expression import ExpressionNode
    from waitchain.observer import ScopeObserverRegistry

logger = logging.getLogger(__name__)


class ExecutionState(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FULFILLED = "fulfilled"


@dataclass(frozen=True)
class ExecutionEvent:
    """Payload for every execution/check hook."""

    expression: ExpressionNode
    execution_id: int
    result_future: Future[Any]


HookCallback = Callable[["Execution"], None]


class Execution:
    """Runs one expression against its deadlines and resolves ``result_future``.

    Parameters:
        expression: The expression to run (its effective chain is snapshotted).
        registry: Scope observers that deliver change signals.
        execution_id: Correlation id for hooks; carries no ordering meaning.
        timer_backend: Clock and scheduler for the deadline timers.
    """

    def __init__(
        self,
        expression: ExpressionNode,
        registry: ScopeObserverRegistry,
        execution_id: int,
        *,
        timer_backend: TimerBackend,
    ) -> None:
        self.expression = expression
        self.chain = expression.get_chain()
        self.registry = registry
        self.id = execution_id
        self.state = ExecutionState.NOT_STARTED
        self.start_time: float | None = None
        self.registered_scopes: set[Any] = set()
        self.deadline_timers: dict[float, Timer] = {}
        self.result_future: Future[Any] = Future()
        self.on_check_begin: HookCallback | None = None
        self.on_check_end: HookCallback | None = None
        self._timer_backend = timer_backend
        self._observe = True
        self._armed_at = 0.0

    @property
    def fulfilled(self) -> bool:
        return self.state is ExecutionState.FULFILLED

    def event(self) -> ExecutionEvent:
        return ExecutionEvent(self.expression, self.id, self.result_future)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute(self) -> Any:
        """Start (once) and wait for the outcome. Later calls return the same outcome."""
        if self.state is ExecutionState.NOT_STARTED:
            self.first_check()
        return await asyncio.wrap_future(self.result_future)

    def execute_once(self) -> Any:
        """Single synchronous check: no timers, no scope registrations."""
        result = self.first_check(observe=False)
        if result.succeeded:
            return result.value
        raise result.failure_error()

    def first_check(self, *, observe: bool = True) -> CheckResult:
        if self.state is not ExecutionState.NOT_STARTED:
            raise IllegalStateError("Execution.first_check(): invalid state, already started")

        now = self._timer_backend.now()
        self._armed_at = now
        self.state = ExecutionState.RUNNING
        self._observe = observe
        start_time = now

        for node in self.chain:
            override = node.override_start_time
            if override is RESET_START_TIME:
                start_time = now
            elif override is not None:
                start_time = override

            if observe:
                for deadline in node.additional_deadlines_ms:
                    if deadline not in self.deadline_timers:
                        self._arm_deadline(deadline, deadline)

        self.start_time = start_time
        return self.check()

    def check(self) -> CheckResult:
        if self.state is ExecutionState.NOT_STARTED:
            raise IllegalStateError("Execution.check(): this execution has not been started")
        if self.state is ExecutionState.FULFILLED:
            raise IllegalStateError("Execution.check(): this execution has already been fulfilled")

        if self.on_check_begin is not None:
            self.on_check_begin(self)
        try:
            return self._run_chain()
        finally:
            if self.on_check_end is not None:
                self.on_check_end(self)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_chain(self) -> CheckResult:
        execution_start = self.start_time
        if execution_start is None:
            raise IllegalStateError("Execution.check(): start time was never set")
        check_start = self._timer_backend.now()
        meta = CheckMeta(execution_start=execution_start, check_start=check_start)
        scope_of = self.expression.binding.scope_of
        result = CheckResult()
        scopes: set[Any] = set()
        pending_node: ExpressionNode | None = None

        for node in self.chain:
            outcome = result.run_step(node.step, meta)
            if isinstance(outcome, Pending):
                pending_node = node
            if not isinstance(outcome, Success):
                break
            result.add_scopes_to(scopes, scope_of)

        if pending_node is None:
            self._fulfill(result)
        elif check_start - execution_start >= pending_node.timeout_ms:
            self._reject(
                WaitTimeoutError(
                    pending_node.timeout_ms,
                    result.failure_string(),
                    pending_node,
                    self.expression,
                )
            )
        elif self._observe:
            self._update_scope_registrations(scopes)
        else:
            # a single check settles before on_check_end sees the future
            self._fulfill(result)

        return result

    def _update_scope_registrations(self, scopes: set[Any]) -> None:
        for scope in self.registered_scopes - scopes:
            self.registry.unregister_execution(scope, self)
        for scope in scopes:
            # repeated registration is harmless
            self.registry.register_execution(scope, self)
        self.registered_scopes = scopes

    def _cleanup(self) -> None:
        for scope in self.registered_scopes:
            self.registry.unregister_execution(scope, self)
        self.registered_scopes = set()

        for timer in self.deadline_timers.values():
            timer.cancel()
        self.deadline_timers.clear()

    def _fulfill(self, result: CheckResult) -> None:
        if result.succeeded:
            self._settle(value=result.value)
        else:
            self._settle(error=result.failure_error())

    def _reject(self, error: BaseException) -> None:
        self._settle(error=error)

    def _settle(self, *, value: Any = None, error: BaseException | None = None) -> None:
        if self.fulfilled:
            return
        self.state = ExecutionState.FULFILLED
        self._cleanup()
        if error is None:
            self.result_future.set_result(value)
            logger.debug("Execution %d resolved", self.id)
        else:
            self.result_future.set_exception(error)
            logger.debug("Execution %d rejected: %s", self.id, type(error).__name__)

    def _arm_deadline(self, deadline: float, delay_ms: float) -> None:
        timer = Timer(delay_ms, partial(self._handle_deadline, deadline), self._timer_backend)
        timer.schedule()
        self.deadline_timers[deadline] = timer

    def _handle_deadline(self, deadline: float) -> None:
        if self.state is not ExecutionState.RUNNING:
            return
        self.check()
        if self.state is not ExecutionState.RUNNING:
            return
        # the timer fired before the backend clock reached the deadline
        remaining = deadline - (self._timer_backend.now() - self._armed_at)
        if remaining > 0:
            self._arm_deadline(deadline, remaining)
