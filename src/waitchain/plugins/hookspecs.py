"""Pluggy hook specifications for execution and check lifecycle events.

``on_execute_begin``/``on_execute_end`` wrap ``await expression.execute()``.
``on_check_begin``/``on_check_end`` wrap every check, including the single
check made by ``execute_once()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from waitchain.execution import ExecutionEvent

hookspec = pluggy.HookspecMarker("waitchain")
hookimpl = pluggy.HookimplMarker("waitchain")


class WaitchainHookSpec:
    """Hook specifications for the waitchain plugin system."""

    @hookspec
    def on_execute_begin(self, event: ExecutionEvent) -> None:
        """Called before the first check of an awaited execution."""

    @hookspec
    def on_execute_end(self, event: ExecutionEvent) -> None:
        """Called once an awaited execution has resolved or rejected."""

    @hookspec
    def on_check_begin(self, event: ExecutionEvent) -> None:
        """Called before the chain is evaluated."""

    @hookspec
    def on_check_end(self, event: ExecutionEvent) -> None:
        """Called after the chain is evaluated, whatever the outcome."""
