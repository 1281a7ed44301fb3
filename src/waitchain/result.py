"""Step outcomes and the per-check result accumulator.

Failure reasons are carried as :class:`ReasonTemplate` values: literal
fragments plus interpolated values.  Nothing is formatted until a failure is
actually reported.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from waitchain.errors import ExpressionFailedError


@dataclass(frozen=True)
class ReasonTemplate:
    """Lazily rendered message: ``strings[0] + values[0] + strings[1] + ...``."""

    strings: tuple[str, ...]
    values: tuple[Any, ...] = ()

    @classmethod
    def from_parts(cls, *parts: Any) -> ReasonTemplate:
        """Build from alternating ``str`` fragments and values.

        ``from_parts("only ", count, " results were found")`` keeps ``count``
        as a value; adjacent strings are merged.
        """
        strings: list[str] = [""]
        values: list[Any] = []
        for part in parts:
            if isinstance(part, str):
                strings[-1] += part
            else:
                values.append(part)
                strings.append("")
        return cls(tuple(strings), tuple(values))

    def render(self) -> str:
        out = [self.strings[0]]
        for value, fragment in zip(self.values, self.strings[1:], strict=True):
            out.append(str(value))
            out.append(fragment)
        return "".join(out)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Success:
    value: Any = None


@dataclass(frozen=True)
class Pending:
    reason: ReasonTemplate


@dataclass(frozen=True)
class FatalFailure:
    reason: ReasonTemplate | None = None
    error: BaseException | None = None


Outcome = Success | Pending | FatalFailure


def success(value: Any = None) -> Success:
    return Success(value)


def pending(*parts: Any) -> Pending:
    return Pending(ReasonTemplate.from_parts(*parts))


def fatal(*parts: Any) -> FatalFailure:
    return FatalFailure(reason=ReasonTemplate.from_parts(*parts))


def result_to_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple):
        return list(value)
    if value is None:
        return []
    return [value]


def result_count(value: Any) -> int:
    if isinstance(value, list | tuple):
        return len(value)
    return 0 if value is None else 1


class CheckResult:
    """Running value threaded through one pass over the chain.

    Tracks the status of the last step that ran and, for pending or fatal
    outcomes, the reason or error needed to build the rejection.
    """

    def __init__(self) -> None:
        self.value: Any = None
        self.last_outcome: Outcome | None = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.last_outcome, Success)

    @property
    def is_pending(self) -> bool:
        return isinstance(self.last_outcome, Pending)

    @property
    def is_fatal(self) -> bool:
        return isinstance(self.last_outcome, FatalFailure)

    def run_step(self, step: Any, meta: Any) -> Outcome:
        """Execute *step* against the running value; exceptions become fatal."""
        try:
            outcome = step.execute(self.value, meta)
            if not isinstance(outcome, Success | Pending | FatalFailure):
                raise TypeError(
                    f"{type(step).__name__}.execute() returned {outcome!r}, expected an Outcome"
                )
        except Exception as exc:
            outcome = FatalFailure(error=exc)

        self.value = outcome.value if isinstance(outcome, Success) else None
        self.last_outcome = outcome
        return outcome

    def add_scopes_to(self, scopes: set[Any], scope_of: Callable[[Any], Any]) -> None:
        for item in result_to_list(self.value):
            scopes.add(scope_of(item))

    def failure_string(self) -> str | None:
        outcome = self.last_outcome
        if isinstance(outcome, Pending):
            return outcome.reason.render()
        if isinstance(outcome, FatalFailure):
            if outcome.reason is not None:
                return outcome.reason.render()
            if outcome.error is not None:
                return f"{type(outcome.error).__name__}: {outcome.error}"
        return None

    def failure_error(self) -> BaseException:
        outcome = self.last_outcome
        if isinstance(outcome, FatalFailure) and outcome.error is not None:
            return outcome.error
        reason = getattr(outcome, "reason", None)
        return ExpressionFailedError(reason or ReasonTemplate(("unknown failure",)))


def chain_values(values: Iterable[Iterable[Any]]) -> list[Any]:
    out: list[Any] = []
    for items in values:
        out.extend(items)
    return out
