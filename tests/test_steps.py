"""Tests for the generic condition steps."""

from __future__ import annotations

import math
import re

import pytest

from conftest import add_node
from fake_tree import FakeBinding, FakeDocument, FakeNode, all_by_tag, by_tag
from waitchain.binding import ReadyState
from waitchain.result import FatalFailure, Pending, Success
from waitchain.steps import (
    DEFAULT_AMOUNT_STEP,
    Amount,
    Check,
    CheckMeta,
    ContainsText,
    Delay,
    DocumentComplete,
    DocumentInteractive,
    First,
    IsDisplayed,
    Noop,
    Query,
    QueryAll,
    Target,
    describe_callback,
)

META = CheckMeta(execution_start=1000, check_start=1000)


class TestStepBase:
    def test_steps_are_immutable(self) -> None:
        step = Amount(1)
        with pytest.raises(AttributeError):
            step.minimum = 3  # type: ignore[misc]

    def test_defaults(self) -> None:
        step = Noop()
        assert step.execute("x", META) == Success("x")
        assert step.describe(1000) == ""
        assert step.wants_default_amount_check is False
        assert step.applies_amount_check is False
        assert step.additional_deadlines_ms == ()

    def test_describe_callback_truncates(self) -> None:
        def f() -> None:
            pass

        f.__qualname__ = "x" * 100
        text = describe_callback(f)
        assert len(text) == 64
        assert text.endswith("…")


class TestTarget:
    def test_sets_value(self, binding: FakeBinding, document: FakeDocument) -> None:
        assert Target(document, binding).execute(None, META) == Success(document)

    def test_list_and_callable(self, binding: FakeBinding, document: FakeDocument) -> None:
        node = add_node(document, "p")
        assert Target([document, node], binding).execute(None, META) == Success([document, node])
        assert Target(lambda: node, binding).execute(None, META) == Success(node)

    def test_invalid_value_is_fatal(self, binding: FakeBinding) -> None:
        outcome = Target("not a node", binding).execute(None, META)
        assert isinstance(outcome, FatalFailure)
        assert "not a scope nor a node" in str(outcome.reason)

    def test_detached_node_is_fatal(self, binding: FakeBinding) -> None:
        outcome = Target(FakeNode("p"), binding).execute(None, META)
        assert isinstance(outcome, FatalFailure)

    def test_describe(self, binding: FakeBinding, document: FakeDocument) -> None:
        assert Target(document, binding).describe(0) == "sets the target to #document(document)"
        many = [document] * 7
        assert Target(many, binding).describe(0).endswith(", …]")


class TestAmount:
    def test_validation(self) -> None:
        with pytest.raises(TypeError, match="minimum must be a number"):
            Amount("1")  # type: ignore[arg-type]
        with pytest.raises(ValueError, match="greater than or equal"):
            Amount(3, 1)

    def test_pending_reasons(self) -> None:
        step = Amount(2, 3)
        assert str(step.execute(None, META).reason) == (
            "no results were found, instead of a minimum of 2 results"
        )
        assert str(step.execute(["a"], META).reason) == (
            "only 1 results were found, instead of a minimum of 2 results"
        )
        assert str(step.execute(list("abcd"), META).reason) == (
            "4 results were found, instead of a maximum of 3 results"
        )
        assert step.execute(["a", "b"], META) == Success(["a", "b"])

    def test_describe(self) -> None:
        assert Amount(2).describe(5000) == "waits up to 5 seconds until exactly 2 results are found"
        assert DEFAULT_AMOUNT_STEP.describe(1500) == (
            "waits up to 1.5 seconds until a result is found"
        )
        assert Amount(2, math.inf).describe(1000).endswith("2 or more results are found")
        assert Amount(1, 4).describe(1000).endswith("between 1 and 4 (inclusive) results are found")

    def test_default_amount(self) -> None:
        assert DEFAULT_AMOUNT_STEP.minimum == 1
        assert DEFAULT_AMOUNT_STEP.maximum == math.inf
        assert DEFAULT_AMOUNT_STEP.applies_amount_check


class TestQuery:
    def test_first_match_across_inputs(self, binding: FakeBinding) -> None:
        doc1, doc2 = FakeDocument("one"), FakeDocument("two")
        h1 = add_node(doc2, "h1")
        step = Query(by_tag("h1"), binding, "h1")
        assert step.execute([doc1, doc2], META) == Success(h1)
        assert step.execute(doc1, META) == Success(None)
        assert step.wants_default_amount_check

    def test_non_subject_result_is_fatal(
        self, binding: FakeBinding, document: FakeDocument
    ) -> None:
        step = Query(lambda item: "oops", binding)
        assert isinstance(step.execute(document, META), FatalFailure)

    def test_query_all_concatenates(self, binding: FakeBinding) -> None:
        doc1, doc2 = FakeDocument("one"), FakeDocument("two")
        a = add_node(doc1, "li")
        b = add_node(doc2, "li")
        c = add_node(doc2, "li")
        step = QueryAll(all_by_tag("li"), binding, "li")
        assert step.execute([doc1, doc2], META) == Success([a, b, c])
        assert step.execute(None, META) == Success([])

    def test_describe(self, binding: FakeBinding) -> None:
        assert Query(by_tag("h1"), binding, "#x").describe(0) == (
            "finds the first node matching “#x”"
        )
        assert QueryAll(by_tag("h1"), binding).describe(0) == (
            "finds all nodes matching a callback: `by_tag('h1')`"
        )

    def test_finder_must_be_callable(self, binding: FakeBinding) -> None:
        with pytest.raises(TypeError):
            Query("h1", binding)  # type: ignore[arg-type]


class TestReadyState:
    def test_document_interactive(self, binding: FakeBinding) -> None:
        document = FakeDocument(ready_state=ReadyState.LOADING)
        step = DocumentInteractive(binding)
        assert isinstance(step.execute(document, META), Pending)
        document.ready_state = ReadyState.INTERACTIVE
        assert step.execute(document, META) == Success(document)

    def test_document_complete(self, binding: FakeBinding) -> None:
        document = FakeDocument(ready_state=ReadyState.INTERACTIVE)
        step = DocumentComplete(binding)
        outcome = step.execute(document, META)
        assert isinstance(outcome, Pending)
        assert str(outcome.reason) == "the document has not yet been loaded"
        document.ready_state = ReadyState.COMPLETE
        assert step.execute(document, META) == Success(document)


class TestDelay:
    def test_pending_until_elapsed(self) -> None:
        step = Delay(500)
        outcome = step.execute("x", CheckMeta(execution_start=1000, check_start=1250))
        assert isinstance(outcome, Pending)
        assert str(outcome.reason) == (
            "the delay of 0.5 seconds has not yet elapsed, only 0.25 seconds have elapsed so far"
        )
        assert step.execute("x", CheckMeta(execution_start=1000, check_start=1500)) == Success("x")

    def test_adds_deadline(self) -> None:
        assert Delay(500).additional_deadlines_ms == (500,)


class TestFilters:
    def test_is_displayed(self, binding: FakeBinding, document: FakeDocument) -> None:
        shown = add_node(document, "p")
        hidden = add_node(document, "p", displayed=False)
        step = IsDisplayed(binding)
        assert step.execute([shown, hidden], META) == Success([shown])
        assert step.execute(hidden, META) == Success(None)
        assert step.execute(None, META) == Success(None)

    def test_check(self) -> None:
        step = Check(lambda value: value > 1)
        assert step.execute([1, 2, 3], META) == Success([2, 3])
        assert step.execute(1, META) == Success(None)
        with pytest.raises(TypeError):
            Check(42)  # type: ignore[arg-type]

    def test_contains_text(self, binding: FakeBinding, document: FakeDocument) -> None:
        hello = add_node(document, "p", "hello world")
        bye = add_node(document, "p", "goodbye")
        assert ContainsText("world", binding).execute([hello, bye], META) == Success([hello])
        pattern = ContainsText(re.compile(r"^good"), binding)
        assert pattern.execute([hello, bye], META) == Success([bye])
        assert pattern.describe(0).endswith("regular expression: ^good")
        with pytest.raises(TypeError):
            ContainsText("", binding)

    def test_first(self) -> None:
        assert First().execute(["a", "b"], META) == Success("a")
        assert First().execute([], META) == Success(None)
        assert First().execute("a", META) == Success("a")
