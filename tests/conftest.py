"""Shared pytest fixtures and test helpers for waitchain tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pluggy
import pytest

from fake_tree import FakeBinding, FakeDocument, FakeNode
from waitchain.config.settings import WaitSettings
from waitchain.engine import WaitEngine
from waitchain.result import Outcome
from waitchain.steps import CheckMeta, Step
from waitchain.timer import ManualTimerBackend

hookimpl = pluggy.HookimplMarker("waitchain")


@pytest.fixture
def binding() -> FakeBinding:
    return FakeBinding()


@pytest.fixture
def document() -> FakeDocument:
    return FakeDocument()


@pytest.fixture
def clock() -> ManualTimerBackend:
    """Virtual clock starting at t=0 ms."""
    return ManualTimerBackend()


@pytest.fixture
def settings() -> WaitSettings:
    return WaitSettings(default_timeout_ms=2000)


@pytest.fixture
def engine(binding: FakeBinding, clock: ManualTimerBackend, settings: WaitSettings) -> WaitEngine:
    """Engine on the fake tree, driven by the virtual clock."""
    return WaitEngine(binding, settings=settings, timer_backend=clock)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


class ScriptedStep(Step):
    """Step whose outcome comes from a callable; records every call."""

    __slots__ = ("_deadlines", "_wants", "calls", "fn")

    def __init__(
        self,
        fn: Callable[[Any, CheckMeta], Outcome],
        *,
        deadlines: tuple[float, ...] = (),
        wants_default_amount_check: bool = False,
    ) -> None:
        self._init(fn=fn, calls=[], _deadlines=deadlines, _wants=wants_default_amount_check)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        self.calls.append((value, meta))
        return self.fn(value, meta)

    def describe(self, timeout_ms: float) -> str:
        return "runs a scripted step"

    @property
    def additional_deadlines_ms(self) -> tuple[float, ...]:
        return self._deadlines

    @property
    def wants_default_amount_check(self) -> bool:
        return self._wants


class RecordingPlugin:
    """Plugin that records all hook calls as ``(hook_name, execution_id)``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @hookimpl
    def on_execute_begin(self, event: Any) -> None:
        self.calls.append(("on_execute_begin", event.execution_id))

    @hookimpl
    def on_execute_end(self, event: Any) -> None:
        self.calls.append(("on_execute_end", event.execution_id))

    @hookimpl
    def on_check_begin(self, event: Any) -> None:
        self.calls.append(("on_check_begin", event.execution_id))

    @hookimpl
    def on_check_end(self, event: Any) -> None:
        self.calls.append(("on_check_end", event.execution_id))


def add_node(document: FakeDocument, tag: str, text: str = "", **kwargs: Any) -> FakeNode:
    """Append a new node under the document root (fires a mutation)."""
    return document.root.append(FakeNode(tag, text, **kwargs))
