"""Dispatch bodies — first-match-wins evaluation of method rules.

Each operation of a contract gets one DispatchBody. Rules targeting the
operation are grouped by generic instantiation (a single group keyed ``()``
for non-generic operations) and every group is wired to one dispatch path:

- no rules -> NotStubbedError
- implementation rules -> the first registered delegate, called with the
  actual arguments; branching is bypassed entirely
- matching rules -> BranchChain: rules tried in registration order, the
  first whose argument predicate holds runs its completion

INV: Registration order is the only ordering; later rules are consulted only
when every earlier one mismatched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from rulestub._generics import describe, infer_instantiation
from rulestub._types import StubError
from rulestub._values import default_value

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from rulestub._capture import SampleCall
    from rulestub._generics import Instantiation
    from rulestub._predicate import ArgPredicate
    from rulestub._reflect import Operation
    from rulestub._types import CallArgs

logger = logging.getLogger(__name__)


class NotStubbedError(StubError, NotImplementedError):
    """An operation was called with arguments no rule matches."""

    def __init__(self, operation_name: str, detail: str | None = None) -> None:
        self.operation_name = operation_name
        self.detail = detail
        msg = f"operation not stubbed: {operation_name}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Completions
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Returns:
    """Return ``value`` after firing the optional callback.

    ``declared_type`` is the operation's return annotation for the rule's
    instantiation. A stored None is replaced by that type's default unless
    the annotation admits None.
    """

    value: Any
    declared_type: Any
    callback: Callable[[], object] | None = None

    def complete(self) -> Any:
        if self.callback is not None:
            self.callback()
        if self.value is None:
            return default_value(self.declared_type)
        return self.value


@dataclass(frozen=True, slots=True)
class Throws:
    """Raise an exception built at match time.

    ``exception`` is either an exception class, instantiated without
    arguments, or a zero-argument factory called once per match.
    """

    exception: type[BaseException] | Callable[[], BaseException]

    def build(self) -> BaseException:
        error = self.exception()
        if not isinstance(error, BaseException):
            msg = f"exception factory returned {type(error).__name__}, not an exception"
            raise TypeError(msg)
        return error

    def complete(self) -> Any:
        raise self.build()


# Returns XOR Throws, never both.
type Completion = Returns | Throws


# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MatchingRule:
    """Sample call + argument predicate + completion.

    A rule whose completion was never attached takes part in ordering but
    never matches.
    """

    sample: SampleCall
    predicate: ArgPredicate
    completion: Completion | None


@dataclass(frozen=True, slots=True)
class ImplementationRule:
    """Sample call (operation identity only) + caller-supplied delegate."""

    sample: SampleCall
    implementation: Callable[..., Any]


type MethodRule = MatchingRule | ImplementationRule


# ═══════════════════════════════════════════════════════════════════════════════
# Dispatch paths
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class BranchChain:
    """Matching rules of one instantiation, tried in registration order."""

    operation: Operation
    rules: tuple[MatchingRule, ...]

    def dispatch(self, args: CallArgs) -> Any:
        for rule in self.rules:
            if rule.completion is None:
                continue
            if rule.predicate.evaluate(args):
                return rule.completion.complete()
        raise NotStubbedError(self.operation.name, "no rule matches the arguments")


@dataclass(frozen=True, slots=True)
class Delegate:
    """Custom implementation invoked with the actual call arguments."""

    operation: Operation
    implementation: Callable[..., Any]

    def dispatch(self, args: CallArgs) -> Any:
        return self.implementation(*args)


type DispatchPath = BranchChain | Delegate


@dataclass(frozen=True, slots=True)
class DispatchBody:
    """Synthesized method body of one operation.

    ``paths`` maps an instantiation to its dispatch path. An instantiation
    without a path, including every call of an operation no rule targets,
    raises NotStubbedError.
    """

    operation: Operation
    paths: MappingProxyType[Instantiation, DispatchPath]

    def __call__(self, args: CallArgs) -> Any:
        key = infer_instantiation(self.operation, args) if self.operation.is_generic else ()
        path = self.paths.get(key)
        if path is None:
            detail = f"no rule for instantiation {describe(key)}" if key else None
            raise NotStubbedError(self.operation.name, detail)
        return path.dispatch(args)


def build_dispatch_body(operation: Operation, rules: Sequence[MethodRule]) -> DispatchBody:
    """Wire the rules targeting ``operation`` into a dispatch body."""
    groups: dict[Instantiation, list[MethodRule]] = {}
    for rule in rules:
        if rule.sample.operation == operation:
            groups.setdefault(rule.sample.instantiation, []).append(rule)

    paths = {key: _dispatch_path(operation, key, group) for key, group in groups.items()}
    return DispatchBody(operation=operation, paths=MappingProxyType(paths))


def _dispatch_path(
    operation: Operation, key: Instantiation, rules: list[MethodRule]
) -> DispatchPath:
    implementations = [r for r in rules if isinstance(r, ImplementationRule)]
    if implementations:
        if len(implementations) > 1:
            logger.warning(
                "%d implementation rules target %s%s; the first registered one is used",
                len(implementations),
                operation.name,
                describe(key) if key else "",
            )
        return Delegate(operation, implementations[0].implementation)

    matching = tuple(r for r in rules if isinstance(r, MatchingRule))
    return BranchChain(operation, matching)
