"""Condition steps: the units a wait expression is built from.

Every step is immutable and stateless between checks.  ``execute`` receives
the value produced by the previous step plus a :class:`CheckMeta` and returns
exactly one Outcome.  Steps that need to look at the tree do so through the
``TreeBinding`` given at construction.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from waitchain.binding import ReadyState, TreeBinding
from waitchain.errors import format_seconds
from waitchain.result import (
    Outcome,
    chain_values,
    fatal,
    pending,
    result_count,
    result_to_list,
    success,
)

LEFT_QUOTE = "“"
RIGHT_QUOTE = "”"
HORIZONTAL_ELLIPSIS = "…"
CALLBACK_DESCRIPTION_MAX_LENGTH = 64


@dataclass(frozen=True)
class CheckMeta:
    """Timestamps (ms) handed to every step of one check."""

    execution_start: float
    check_start: float


def describe_callback(func: Callable[..., Any]) -> str:
    text = getattr(func, "__qualname__", None) or repr(func)
    if len(text) <= CALLBACK_DESCRIPTION_MAX_LENGTH:
        return text
    return text[: CALLBACK_DESCRIPTION_MAX_LENGTH - 1] + HORIZONTAL_ELLIPSIS


def _freeze(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return tuple(value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return list(value)
    return value


class Step:
    """Base step: passes the value through and describes nothing."""

    __slots__ = ()

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        return ""

    @property
    def wants_default_amount_check(self) -> bool:
        """This step yields a new candidate set that should hold at least one result."""
        return False

    @property
    def applies_amount_check(self) -> bool:
        """This step is itself a cardinality check."""
        return False

    @property
    def additional_deadlines_ms(self) -> tuple[float, ...]:
        """Extra offsets from the execution start at which to re-check."""
        return ()

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def _init(self, **fields: Any) -> None:
        for name, value in fields.items():
            object.__setattr__(self, name, value)


class Noop(Step):
    __slots__ = ()


class Target(Step):
    """Replace the current value with fixed targets, or the result of a callable."""

    __slots__ = ("binding", "targets")

    def __init__(self, targets: Any, binding: TreeBinding) -> None:
        self._init(targets=_freeze(targets), binding=binding)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        targets = self.targets() if callable(self.targets) else self.targets
        targets = _freeze(targets)
        for item in result_to_list(targets):
            if not self.binding.is_subject(item):
                return fatal("a value that is not a scope nor a node was set as the target")
        return success(_thaw(targets))

    def describe(self, timeout_ms: float) -> str:
        targets = self.targets
        if callable(targets):
            return f"sets the target using a callback: `{describe_callback(targets)}`"
        if isinstance(targets, tuple):
            descriptions: list[str] = []
            for item in targets:
                if len(descriptions) >= 5:
                    descriptions.append(HORIZONTAL_ELLIPSIS)
                    break
                descriptions.append(self.binding.describe(item))
            return f"sets the target to [{', '.join(descriptions)}]"
        return f"sets the target to {self.binding.describe(targets)}"


class Amount(Step):
    """Pending until the number of results lies in ``[minimum, maximum]``."""

    __slots__ = ("maximum", "minimum")

    def __init__(self, minimum: float, maximum: float | None = None) -> None:
        if maximum is None:
            maximum = minimum
        if not isinstance(minimum, int | float) or isinstance(minimum, bool):
            raise TypeError(".amount(minimum, maximum): minimum must be a number")
        if not isinstance(maximum, int | float) or isinstance(maximum, bool):
            raise TypeError(".amount(minimum, maximum): maximum must be a number")
        if minimum > maximum:
            raise ValueError(
                ".amount(minimum, maximum): maximum must be greater than or equal to minimum"
            )
        self._init(minimum=minimum, maximum=maximum)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        count = result_count(value)
        if count < self.minimum:
            if count == 0:
                return pending(
                    "no results were found, instead of a minimum of ",
                    self.minimum,
                    " results",
                )
            return pending(
                "only ", count, " results were found, instead of a minimum of ",
                self.minimum, " results",
            )
        if count > self.maximum:
            return pending(
                count, " results were found, instead of a maximum of ", self.maximum, " results"
            )
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        prefix = f"waits up to {format_seconds(timeout_ms)} seconds until"
        if self.minimum == self.maximum:
            return f"{prefix} exactly {self.minimum} results are found"
        if self.minimum == 1 and self.maximum == math.inf:
            return f"{prefix} a result is found"
        if self.maximum == math.inf:
            return f"{prefix} {self.minimum} or more results are found"
        return (
            f"{prefix} between {self.minimum} and {self.maximum} (inclusive) results are found"
        )

    @property
    def applies_amount_check(self) -> bool:
        return True


DEFAULT_AMOUNT_STEP = Amount(1, math.inf)


class Query(Step):
    """Run *finder* on each input item and keep the first match.

    *finder* receives one item and returns a node or ``None``.
    """

    __slots__ = ("binding", "description", "finder")

    def __init__(
        self,
        finder: Callable[[Any], Any],
        binding: TreeBinding,
        description: str | None = None,
    ) -> None:
        if not callable(finder):
            raise TypeError(".query(finder): finder must be callable")
        self._init(finder=finder, binding=binding, description=description)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        for item in result_to_list(value):
            found = self.finder(item)
            if found is None:
                continue
            if not self.binding.is_subject(found):
                return fatal("a value that is not a node was returned by the query")
            return success(found)
        return success(None)

    def describe(self, timeout_ms: float) -> str:
        return f"finds the first node matching {_query_label(self)}"

    @property
    def wants_default_amount_check(self) -> bool:
        return True


class QueryAll(Step):
    """Run *finder* on each input item and concatenate every match."""

    __slots__ = ("binding", "description", "finder")

    def __init__(
        self,
        finder: Callable[[Any], Any],
        binding: TreeBinding,
        description: str | None = None,
    ) -> None:
        if not callable(finder):
            raise TypeError(".query_all(finder): finder must be callable")
        self._init(finder=finder, binding=binding, description=description)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        found = chain_values(result_to_list(self.finder(item)) for item in result_to_list(value))
        for item in found:
            if not self.binding.is_subject(item):
                return fatal("a value that is not a node was returned by the query")
        return success(found)

    def describe(self, timeout_ms: float) -> str:
        return f"finds all nodes matching {_query_label(self)}"

    @property
    def wants_default_amount_check(self) -> bool:
        return True


def _query_label(step: Query | QueryAll) -> str:
    if step.description:
        return f"{LEFT_QUOTE}{step.description}{RIGHT_QUOTE}"
    return f"a callback: `{describe_callback(step.finder)}`"


class DocumentInteractive(Step):
    __slots__ = ("binding",)

    def __init__(self, binding: TreeBinding) -> None:
        self._init(binding=binding)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        for item in result_to_list(value):
            if self.binding.ready_state(self.binding.scope_of(item)) == ReadyState.LOADING:
                return pending("the document has not yet been parsed")
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        return (
            f"waits up to {format_seconds(timeout_ms)} seconds until the document has finished "
            "parsing"
        )


class DocumentComplete(Step):
    __slots__ = ("binding",)

    def __init__(self, binding: TreeBinding) -> None:
        self._init(binding=binding)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        for item in result_to_list(value):
            state = self.binding.ready_state(self.binding.scope_of(item))
            if state == ReadyState.LOADING:
                return pending("the document has not yet been parsed")
            if state == ReadyState.INTERACTIVE:
                return pending("the document has not yet been loaded")
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        return (
            f"waits up to {format_seconds(timeout_ms)} seconds until all synchronous "
            "resources of the document have been loaded"
        )


class Delay(Step):
    """Pending until ``delay_ms`` have passed since the execution start."""

    __slots__ = ("delay_ms",)

    def __init__(self, delay_ms: float) -> None:
        self._init(delay_ms=delay_ms)

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        elapsed = meta.check_start - meta.execution_start
        if elapsed < self.delay_ms:
            return pending(
                "the delay of ", format_seconds(self.delay_ms),
                " seconds has not yet elapsed, only ", format_seconds(elapsed),
                " seconds have elapsed so far",
            )
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        return (
            f"waits until {format_seconds(self.delay_ms)} seconds have elapsed "
            "since the start of the execution"
        )

    @property
    def additional_deadlines_ms(self) -> tuple[float, ...]:
        return (self.delay_ms,)


class _Filter(Step):
    """Keep the items for which :meth:`keep` is true; never pending."""

    __slots__ = ()

    def keep(self, item: Any) -> bool:
        raise NotImplementedError

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        if value is None:
            return success(None)
        if isinstance(value, list | tuple):
            return success([item for item in value if self.keep(item)])
        return success(value if self.keep(value) else None)


class IsDisplayed(_Filter):
    __slots__ = ("binding",)

    def __init__(self, binding: TreeBinding) -> None:
        self._init(binding=binding)

    def keep(self, item: Any) -> bool:
        return self.binding.is_displayed(item)

    def describe(self, timeout_ms: float) -> str:
        return "but only including nodes which are displayed"


class Check(_Filter):
    __slots__ = ("callback",)

    def __init__(self, callback: Callable[[Any], bool]) -> None:
        if not callable(callback):
            raise TypeError(".check(callback): callback must be a function")
        self._init(callback=callback)

    def keep(self, item: Any) -> bool:
        return bool(self.callback(item))

    def describe(self, timeout_ms: float) -> str:
        callback = describe_callback(self.callback)
        return f"but only including results that match a callback: `{callback}`"


class ContainsText(_Filter):
    __slots__ = ("binding", "text")

    def __init__(self, text: str | re.Pattern[str], binding: TreeBinding) -> None:
        if not text or not isinstance(text, str | re.Pattern):
            raise TypeError(".contains_text(text): text must be a string or compiled pattern")
        self._init(text=text, binding=binding)

    def keep(self, item: Any) -> bool:
        content = self.binding.text_content(item)
        if isinstance(self.text, str):
            return self.text in content
        return self.text.search(content) is not None

    def describe(self, timeout_ms: float) -> str:
        if isinstance(self.text, str):
            return (
                "but only including results that contain the text: "
                f"{LEFT_QUOTE}{self.text}{RIGHT_QUOTE}"
            )
        return (
            "but only including results that contain text matching the "
            f"regular expression: {self.text.pattern}"
        )


class First(Step):
    __slots__ = ()

    def execute(self, value: Any, meta: CheckMeta) -> Outcome:
        if isinstance(value, list | tuple):
            return success(value[0] if value else None)
        return success(value)

    def describe(self, timeout_ms: float) -> str:
        return "but only returning the first result"
