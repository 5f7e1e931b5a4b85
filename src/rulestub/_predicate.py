"""Argument predicates — the equality branch of a matching rule.

ArgEquals compares one bound argument with its expected value. AllOf
composes them with short-circuit evaluation: the first mismatching position
abandons the rule. Always is the catch-all for operations without
parameters.

The ArgPredicate union type is pattern-matchable via match/case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rulestub._types import CallArgs


@dataclass(frozen=True, slots=True)
class ArgEquals:
    """Expected value at one parameter position.

    Uses the expected value's natural equality (``==``), with one exception:
    an expected None matches only an actual None, never a falsy or
    default-constructed value.
    """

    position: int
    expected: Any

    def evaluate(self, args: CallArgs) -> bool:
        actual = args[self.position]
        if self.expected is None:
            return actual is None  # INV: None matches only None
        return bool(self.expected == actual)


@dataclass(frozen=True, slots=True)
class AllOf:
    """Every position must match. Empty AllOf returns True (vacuous truth)."""

    predicates: tuple[ArgPredicate, ...]

    def evaluate(self, args: CallArgs) -> bool:
        return all(p.evaluate(args) for p in self.predicates)


@dataclass(frozen=True, slots=True)
class Always:
    """Matches every call."""

    def evaluate(self, args: CallArgs) -> bool:
        return True


type ArgPredicate = ArgEquals | AllOf | Always


def and_predicate(predicates: list[ArgPredicate], catch_all: ArgPredicate) -> ArgPredicate:
    """Compose predicates with AND semantics, optimizing for common cases.

    - Empty -> catch_all (no conditions = match everything)
    - Single -> unwrapped (no wrapping overhead)
    - Multiple -> AllOf(predicates)
    """
    if not predicates:
        return catch_all
    if len(predicates) == 1:
        return predicates[0]
    return AllOf(tuple(predicates))


def predicate_for(expected: CallArgs) -> ArgPredicate:
    """Build the predicate matching calls whose arguments equal ``expected``."""
    return and_predicate(
        [ArgEquals(position, value) for position, value in enumerate(expected)],
        Always(),
    )


def predicate_width(p: ArgPredicate) -> int:
    """Number of argument positions a predicate compares."""
    match p:
        case ArgEquals():
            return 1
        case AllOf(predicates=ps):
            return sum(predicate_width(sub) for sub in ps)
        case Always():
            return 0
        case _:  # pragma: no cover
            return 0
