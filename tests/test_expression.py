"""Tests for ExpressionNode chains and the fluent builder."""

from __future__ import annotations

import dataclasses
import math

import pytest

from conftest import ScriptedStep
from fake_tree import FakeDocument, by_tag
from waitchain.engine import WaitEngine
from waitchain.expression import RESET_START_TIME, ExpressionNode, parse_timeout
from waitchain.result import success
from waitchain.steps import DEFAULT_AMOUNT_STEP, Amount, Noop, Query


class TestParseTimeout:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1500, 1500), (2.5, 2.5), ("10s", 10000), ("0.25s", 250)],
    )
    def test_valid(self, value: float | str, expected: float) -> None:
        assert parse_timeout(value) == expected

    @pytest.mark.parametrize("value", ["10", "10ms", "s", None, True])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ValueError, match="Invalid timeout"):
            parse_timeout(value)  # type: ignore[arg-type]


class TestNodeConstruction:
    def test_root_uses_engine_default_timeout(self, engine: WaitEngine) -> None:
        root = engine.action(Noop())
        assert root.previous is None
        assert root.depth == 0
        assert root.timeout_ms == 2000
        assert root.additional_deadlines_ms == (2000,)

    def test_child_inherits_timeout_and_executors(
        self, engine: WaitEngine, document: FakeDocument
    ) -> None:
        root = engine.target(document).timeout("5s")
        child = root.first()
        assert child.depth == 2
        assert child.timeout_ms == 5000
        assert child.executor is root.executor
        assert child.once_executor is root.once_executor
        assert child.binding is engine.binding

    def test_additional_deadlines_include_step_deadlines(self, engine: WaitEngine) -> None:
        node = engine.delay(750)
        assert node.additional_deadlines_ms == (2000, 750)

    def test_nodes_are_frozen(self, engine: WaitEngine) -> None:
        node = engine.action(Noop())
        with pytest.raises(dataclasses.FrozenInstanceError):
            node.timeout_ms = 1  # type: ignore[misc]

    def test_root_requires_executors(self) -> None:
        with pytest.raises(ValueError, match="root expression"):
            ExpressionNode(None, Noop(), 1000)

    def test_child_rejects_executors(self, engine: WaitEngine) -> None:
        root = engine.action(Noop())

        async def executor(node: ExpressionNode) -> None:
            return None

        with pytest.raises(ValueError, match="only be set on the root"):
            ExpressionNode(root, Noop(), 1000, executor=executor)

    def test_invalid_arguments(self, engine: WaitEngine) -> None:
        root = engine.action(Noop())
        with pytest.raises(TypeError, match="previous"):
            ExpressionNode("root", Noop(), 1000)  # type: ignore[arg-type]
        with pytest.raises(TypeError, match="step"):
            root.append("noop")  # type: ignore[arg-type]
        with pytest.raises(TypeError, match="timeout_ms"):
            root.append(Noop(), timeout_ms="1s")  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            engine.action("noop")  # type: ignore[arg-type]


class TestChainPurity:
    def test_append_does_not_touch_ancestors(
        self, engine: WaitEngine, document: FakeDocument
    ) -> None:
        prefix = engine.target(document).document_complete()
        before = prefix.get_chain()

        one = prefix.query(by_tag("a"), "a")
        two = prefix.query(by_tag("b"), "b").first()

        assert prefix.get_chain() == before
        assert one.previous is prefix
        assert two.previous.previous is prefix
        assert one.get_chain()[:2] == before
        assert two.get_chain()[:2] == before

    def test_chain_is_cached(self, engine: WaitEngine, document: FakeDocument) -> None:
        node = engine.target(document).first()
        assert node.get_chain() is node.get_chain()


class TestDefaultAmountInjection:
    def test_query_gets_default_amount(self, engine: WaitEngine, document: FakeDocument) -> None:
        node = engine.target(document).query(by_tag("x"), "#x")
        chain = node.get_chain()
        assert len(chain) == node.depth + 2
        assert chain[-1].step is DEFAULT_AMOUNT_STEP
        assert chain[-1].step.minimum == 1
        assert chain[-1].step.maximum == math.inf
        assert chain[-1].timeout_ms == node.timeout_ms
        assert chain[-2] is node

    def test_want_propagates_through_filters(
        self, engine: WaitEngine, document: FakeDocument
    ) -> None:
        node = engine.target(document).query_all(by_tag("x")).is_displayed().first()
        assert node.wants_default_amount_check
        assert len(node.get_chain()) == 5

    def test_explicit_amount_suppresses_default(
        self, engine: WaitEngine, document: FakeDocument
    ) -> None:
        node = engine.target(document).query_all(by_tag("x")).amount(2, 4)
        assert not node.wants_default_amount_check
        assert node.default_amount_child is None
        assert len(node.get_chain()) == 3
        assert isinstance(node.get_chain()[-1].step, Amount)

    def test_step_that_wants_and_applies_gets_no_default(self, engine: WaitEngine) -> None:
        class AmountLike(Amount):
            __slots__ = ()

            @property
            def wants_default_amount_check(self) -> bool:
                return True

        node = engine.action(AmountLike(1))
        assert not node.wants_default_amount_check

    def test_custom_step_flag(self, engine: WaitEngine) -> None:
        step = ScriptedStep(lambda v, m: success(v), wants_default_amount_check=True)
        node = engine.action(step)
        assert node.default_amount_child is not None
        assert node.get_chain() == (node, node.default_amount_child)


class TestDescribe:
    def test_joins_non_empty_fragments(self, engine: WaitEngine, document: FakeDocument) -> None:
        node = engine.target(document).timeout("3s").query(by_tag("h1"), "h1").first()
        assert node.describe() == (
            "The expression sets the target to #document(document), "
            "finds the first node matching “h1”, "
            "but only returning the first result, "
            "waits up to 3 seconds until a result is found."
        )


class TestStartTimeOverrides:
    def test_builder_sets_override(self, engine: WaitEngine) -> None:
        assert engine.start_time(1234).override_start_time == 1234
        assert engine.reset_start_time().override_start_time is RESET_START_TIME
        assert engine.first().override_start_time is None


def test_query_builder_passes_binding(engine: WaitEngine) -> None:
    node = engine.query(by_tag("h1"), "h1")
    assert isinstance(node.step, Query)
    assert node.step.binding is engine.binding
