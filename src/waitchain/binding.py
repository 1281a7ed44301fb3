"""Boundary to the observed tree.

waitchain never walks a tree or listens for raw events itself.  A
``TreeBinding`` maps result values to their owning scope, answers the few
questions the generic steps need, and installs change listeners.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable


class ReadyState(StrEnum):
    """Load state of a scope, mirroring ``document.readyState``."""

    LOADING = "loading"
    INTERACTIVE = "interactive"
    COMPLETE = "complete"


ChangeCallback = Callable[[], None]


@runtime_checkable
class TreeBinding(Protocol):
    def is_subject(self, value: Any) -> bool:
        """Whether *value* may be a step input/output (a scope or a node in one)."""
        ...

    def scope_of(self, value: Any) -> Any:
        """Scope that owns *value*. Scopes must be hashable and weak-referenceable."""
        ...

    def is_alive(self, scope: Any) -> bool: ...

    def ready_state(self, scope: Any) -> ReadyState: ...

    def is_displayed(self, node: Any) -> bool: ...

    def text_content(self, node: Any) -> str: ...

    def describe(self, value: Any) -> str:
        """Short human label used in expression descriptions."""
        ...

    def add_listeners(
        self,
        scope: Any,
        immediate: ChangeCallback,
        deferred: ChangeCallback,
    ) -> None:
        """Start delivering changes on *scope*.

        *immediate* is for strong readiness signals (load finished);
        *deferred* is for fine-grained mutations, which get coalesced.
        """
        ...

    def remove_listeners(
        self,
        scope: Any,
        immediate: ChangeCallback,
        deferred: ChangeCallback,
    ) -> None: ...
