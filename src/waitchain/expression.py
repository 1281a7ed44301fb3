"""Immutable, back-linked wait expressions and the fluent builder.

An :class:`ExpressionNode` is one link of a chain.  Appending a step creates
a new node that points back at its parent; ancestors are never touched, so a
prefix can be shared by any number of expressions::

    page = engine.target(document).document_interactive()
    heading = page.query(find_h1, "h1")
    button = page.query(find_button, "button").is_displayed()

Building never performs I/O.  ``await node.execute()`` or
``node.execute_once()`` explicitly runs it.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any, cast

from waitchain import steps
from waitchain.steps import DEFAULT_AMOUNT_STEP, Step

if TYPE_CHECKING:
    from waitchain.binding import TreeBinding

Executor = Callable[["ExpressionNode"], Awaitable[Any]]
OnceExecutor = Callable[["ExpressionNode"], Any]

_TIMEOUT_RE = re.compile(r"^([\d.]+)s$")


class StartTimeOverride(Enum):
    RESET = "reset"


RESET_START_TIME = StartTimeOverride.RESET
"""Override marker: restart the execution clock at the first check."""


def parse_timeout(timeout: float | str) -> float:
    """Milliseconds from a number of ms or a ``"<n>s"`` duration string."""
    if isinstance(timeout, str):
        match = _TIMEOUT_RE.match(timeout)
        if match:
            return float(match.group(1)) * 1000
    elif isinstance(timeout, int | float) and not isinstance(timeout, bool):
        return timeout
    raise ValueError("Invalid timeout argument, expected a number or a duration string")


class ExpressionChainable:
    """Fluent step constructors shared by the engine (root) and every node."""

    def create_next_expression(
        self,
        step: Step,
        timeout_ms: float | None = None,
        override_start_time: float | StartTimeOverride | None = None,
    ) -> ExpressionNode:
        raise NotImplementedError

    @property
    def binding(self) -> TreeBinding:
        raise NotImplementedError

    def action(self, step: Step) -> ExpressionNode:
        if not isinstance(step, Step):
            raise TypeError(".action(step): step must be a Step instance")
        return self.create_next_expression(step)

    def target(self, targets: Any) -> ExpressionNode:
        return self.create_next_expression(steps.Target(targets, self.binding))

    def timeout(self, timeout: float | str) -> ExpressionNode:
        """Set the deadline for this and all following steps ("10s" or ms)."""
        return self.create_next_expression(steps.Noop(), timeout_ms=parse_timeout(timeout))

    def amount(self, minimum: float, maximum: float | None = None) -> ExpressionNode:
        return self.create_next_expression(steps.Amount(minimum, maximum))

    def query(self, finder: Callable[[Any], Any], description: str | None = None) -> ExpressionNode:
        return self.create_next_expression(steps.Query(finder, self.binding, description))

    def query_all(
        self,
        finder: Callable[[Any], Any],
        description: str | None = None,
    ) -> ExpressionNode:
        return self.create_next_expression(steps.QueryAll(finder, self.binding, description))

    def document_interactive(self) -> ExpressionNode:
        return self.create_next_expression(steps.DocumentInteractive(self.binding))

    def document_complete(self) -> ExpressionNode:
        return self.create_next_expression(steps.DocumentComplete(self.binding))

    def delay(self, timeout: float | str) -> ExpressionNode:
        return self.create_next_expression(steps.Delay(parse_timeout(timeout)))

    def is_displayed(self) -> ExpressionNode:
        return self.create_next_expression(steps.IsDisplayed(self.binding))

    def check(self, callback: Callable[[Any], bool]) -> ExpressionNode:
        return self.create_next_expression(steps.Check(callback))

    def contains_text(self, text: str | re.Pattern[str]) -> ExpressionNode:
        return self.create_next_expression(steps.ContainsText(text, self.binding))

    def first(self) -> ExpressionNode:
        return self.create_next_expression(steps.First())

    def start_time(self, timestamp_ms: float) -> ExpressionNode:
        """Measure deadlines from *timestamp_ms* instead of the first check.

        *timestamp_ms* is read on the engine clock (``timer_backend.now()``),
        which is monotonic, not wall-clock time.  When several overrides appear
        in one chain the last one wins.
        """
        return self.create_next_expression(steps.Noop(), override_start_time=timestamp_ms)

    def reset_start_time(self) -> ExpressionNode:
        """Measure deadlines from the first check, undoing earlier overrides."""
        return self.create_next_expression(steps.Noop(), override_start_time=RESET_START_TIME)


@dataclass(frozen=True, eq=False)
class ExpressionNode(ExpressionChainable):
    """One immutable link of a wait expression.

    Only the root (``previous is None``) is constructed with the executors
    and binding; descendants inherit them.
    """

    previous: ExpressionNode | None
    step: Step
    timeout_ms: float
    override_start_time: float | StartTimeOverride | None = None
    executor: Executor | None = field(default=None, repr=False)
    once_executor: OnceExecutor | None = field(default=None, repr=False)
    tree_binding: TreeBinding | None = field(default=None, repr=False)
    depth: int = field(init=False)
    additional_deadlines_ms: tuple[float, ...] = field(init=False)
    wants_default_amount_check: bool = field(init=False)
    default_amount_child: ExpressionNode | None = field(init=False, repr=False)

    def __post_init__(self) -> None:
        prev = self.previous
        if prev is not None and not isinstance(prev, ExpressionNode):
            raise TypeError("Invalid argument `previous`")
        if not isinstance(self.step, Step):
            raise TypeError("Invalid argument `step`")
        if not isinstance(self.timeout_ms, int | float) or isinstance(self.timeout_ms, bool):
            raise TypeError("Invalid argument `timeout_ms`")

        if prev is None:
            if self.executor is None or self.once_executor is None or self.tree_binding is None:
                raise ValueError("the root expression requires executors and a binding")
        else:
            if self.executor is not None or self.once_executor is not None:
                raise ValueError("executors must only be set on the root expression")
            object.__setattr__(self, "executor", prev.executor)
            object.__setattr__(self, "once_executor", prev.once_executor)
            object.__setattr__(self, "tree_binding", prev.tree_binding)

        wants = (
            (prev is not None and prev.wants_default_amount_check)
            or self.step.wants_default_amount_check
        ) and not self.step.applies_amount_check

        object.__setattr__(self, "depth", 0 if prev is None else prev.depth + 1)
        object.__setattr__(
            self,
            "additional_deadlines_ms",
            (self.timeout_ms, *self.step.additional_deadlines_ms),
        )
        object.__setattr__(self, "wants_default_amount_check", wants)
        object.__setattr__(
            self,
            "default_amount_child",
            ExpressionNode(self, DEFAULT_AMOUNT_STEP, self.timeout_ms) if wants else None,
        )

    @property
    def binding(self) -> TreeBinding:
        return cast("TreeBinding", self.tree_binding)

    def create_next_expression(
        self,
        step: Step,
        timeout_ms: float | None = None,
        override_start_time: float | StartTimeOverride | None = None,
    ) -> ExpressionNode:
        return ExpressionNode(
            self,
            step,
            self.timeout_ms if timeout_ms is None else timeout_ms,
            override_start_time,
        )

    append = create_next_expression

    @cached_property
    def chain(self) -> tuple[ExpressionNode, ...]:
        """Effective root-to-leaf chain, ending in the default amount node if wanted."""
        if self.default_amount_child is not None:
            return self.default_amount_child.chain

        nodes: list[ExpressionNode] = []
        node: ExpressionNode | None = self
        while node is not None:
            nodes.append(node)
            node = node.previous
        nodes.reverse()
        return tuple(nodes)

    def get_chain(self) -> tuple[ExpressionNode, ...]:
        return self.chain

    def describe(self) -> str:
        descriptions = [
            text for node in self.chain if (text := node.step.describe(node.timeout_ms))
        ]
        return f"The expression {', '.join(descriptions)}."

    async def execute(self) -> Any:
        executor = cast(Executor, self.executor)
        return await executor(self)

    def execute_once(self) -> Any:
        once_executor = cast(OnceExecutor, self.once_executor)
        return once_executor(self)
