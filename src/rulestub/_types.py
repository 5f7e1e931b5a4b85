"""Core protocols and type aliases for rulestub.

The engine is split along two ports, both consumed through narrow contracts:
- ReflectionOracle lists the abstract operations of a contract type
- ProxyFactory turns a dispatch table into an instance of the contract

ArgumentMatcher is the extension point for expected argument values that are
not compared by plain equality.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rulestub._reflect import Operation

# Bound call arguments in parameter order (self excluded, defaults applied).
type CallArgs = tuple[Any, ...]

# One synthesized method body: receives bound arguments, returns or raises.
type DispatchFunction = Callable[[CallArgs], Any]

type DispatchTable = Mapping[Operation, DispatchFunction]


class StubError(Exception):
    """Base class for every error raised by rulestub itself.

    Exceptions declared by a rule's throws() completion are raised as-is and
    do not derive from this class.
    """


@runtime_checkable
class ArgumentMatcher(Protocol):
    """Match an actual call argument against an expectation.

    Matchers also implement __eq__ in terms of matches(), so a matcher placed
    as an expected value takes part in ordinary equality comparison.
    """

    def matches(self, value: Any, /) -> bool: ...


class ReflectionOracle(Protocol):
    """List the operations a proxy has to implement for a contract."""

    def __call__(self, contract: Any, /) -> tuple[Operation, ...]: ...


class ProxyFactory(Protocol):
    """Build an object satisfying the contract from a dispatch table.

    The returned instance must pass isinstance(instance, contract) and route
    every call of an operation to dispatch_table[operation].
    """

    def __call__(
        self,
        contract: Any,
        operations: tuple[Operation, ...],
        dispatch_table: DispatchTable,
        /,
    ) -> Any: ...
