"""Exception taxonomy for wait expressions.

- ``ExpressionFailedError`` — a pending or fatal step reason surfaced as an error.
- ``WaitTimeoutError`` — the first pending step outlived its own deadline.
- ``IllegalStateError`` — programmer error, always raised synchronously.

Exceptions raised by a step itself are delivered unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from waitchain.expression import ExpressionNode
    from waitchain.result import ReasonTemplate


class WaitError(Exception):
    """Base class for all waitchain errors."""


class ExpressionFailedError(WaitError):
    """A step reported a failure reason; the message is rendered on first access."""

    def __init__(self, reason: ReasonTemplate) -> None:
        super().__init__(reason)
        self.reason = reason

    @property
    def message(self) -> str:
        return self.reason.render()

    def __str__(self) -> str:
        return self.message


class WaitTimeoutError(WaitError):
    """Raised when a pending step is still pending at its deadline.

    Attributes:
        timeout_ms: Deadline of the pending node.
        action_failure: Rendered reason from the pending step.
        expression: The node that was pending.
        full_expression: The expression that was executed.
    """

    def __init__(
        self,
        timeout_ms: float,
        action_failure: str | None,
        expression: ExpressionNode,
        full_expression: ExpressionNode,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.action_failure = action_failure
        self.expression = expression
        self.full_expression = full_expression
        self._message: str | None = None
        super().__init__(timeout_ms, action_failure)

    @property
    def message(self) -> str:
        if self._message is None:
            self._message = (
                f"Wait expression timed out after {format_seconds(self.timeout_ms)} seconds "
                f"because {self.action_failure}. {self.expression.describe()}"
            )
        return self._message

    @property
    def full_description(self) -> str:
        return self.full_expression.describe()

    def __str__(self) -> str:
        return self.message


class IllegalStateError(WaitError, RuntimeError):
    """An Execution was driven out of order (restarted, or checked before start/after end)."""


def format_seconds(ms: Any) -> str:
    seconds = ms / 1000
    if float(seconds).is_integer():
        return str(int(seconds))
    return str(seconds)
