"""Built-in plugin: per-execution check timing.

Builds a :class:`~waitchain.telemetry.Span` per execution with one child span
per check, and logs ``execution.complete`` through structlog once the
execution's result future is done.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from waitchain.plugins.hookspecs import hookimpl
from waitchain.telemetry import Span

if TYPE_CHECKING:
    from waitchain.execution import ExecutionEvent

log = structlog.get_logger("waitchain.telemetry")


class CheckTimingPlugin:
    """Collects timing spans keyed by execution id.

    Attributes:
        completed: Finished spans, most recent last.
        max_completed: How many finished spans to keep.
    """

    def __init__(self, max_completed: int = 100) -> None:
        self.max_completed = max_completed
        self.completed: list[Span] = []
        self._active: dict[int, Span] = {}

    @hookimpl
    def on_execute_begin(self, event: ExecutionEvent) -> None:
        self._span_for(event)

    @hookimpl
    def on_check_begin(self, event: ExecutionEvent) -> None:
        span = self._span_for(event)
        span.child("check")

    @hookimpl
    def on_check_end(self, event: ExecutionEvent) -> None:
        span = self._active.get(event.execution_id)
        if span is None:
            return
        if span.children and span.children[-1].is_open:
            span.children[-1].end()
        if event.result_future.done():
            self._finish(event.execution_id, event)

    @hookimpl
    def on_execute_end(self, event: ExecutionEvent) -> None:
        if event.execution_id in self._active:
            self._finish(event.execution_id, event)

    def _span_for(self, event: ExecutionEvent) -> Span:
        span = self._active.get(event.execution_id)
        if span is None:
            span = Span(name=f"execution-{event.execution_id}")
            span.annotate("chain_length", len(event.expression.get_chain()))
            self._active[event.execution_id] = span
        return span

    def _finish(self, execution_id: int, event: ExecutionEvent) -> None:
        span = self._active.pop(execution_id)
        span.end()
        outcome = _outcome_name(event.result_future)
        span.annotate("outcome", outcome)
        self.completed.append(span)
        del self.completed[: -self.max_completed]
        log.debug(
            "execution.complete",
            execution_id=execution_id,
            duration_ms=round(span.duration_ms, 2),
            checks=len(span.children),
            outcome=outcome,
        )


def _outcome_name(future: Any) -> str:
    if not future.done():
        return "pending"
    error = future.exception()
    return "resolved" if error is None else type(error).__name__
