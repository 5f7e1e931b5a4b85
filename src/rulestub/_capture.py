"""Call-descriptor capture — a sample call as (value, type) per parameter.

A sample call names the targeted operation (by the contract's function or by
name) and supplies one expected value per argument. Argument shapes:

- a literal value, captured as-is with ``type(value)``;
- ``Nullable(value)``, a wrapped literal for an optional slot, captured with
  ``type(value) | None`` and rejected on a parameter that never
  gets None;
- ``Snapshot(getter)`` / ``snapshot_attr(obj, name)``, an external binding
  read once, at registration; later mutation of the binding is not seen;
- an argument matcher, captured as-is.

Arguments are bound to the resolved operation's signature with defaults
applied, so the captured list is aligned with the parameter list.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from rulestub._generics import binding_param, infer_instantiation
from rulestub._reflect import resolve_overload
from rulestub._types import ArgumentMatcher, StubError
from rulestub._values import allows_none, is_union

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from rulestub._reflect import Operation
    from rulestub._types import CallArgs


class RegistrationError(StubError):
    """A rule could not be registered."""


class UnsupportedCallShapeError(RegistrationError):
    """A sample call (or one of its arguments) has an unsupported shape."""

    def __init__(self, shape: str) -> None:
        self.shape = shape
        super().__init__(f"unsupported call-descriptor shape: {shape}")


class UnknownOperationError(RegistrationError):
    """A sample call does not resolve to any operation of the contract."""

    def __init__(self, contract: str, name: str, available: list[str]) -> None:
        self.contract = contract
        self.name = name
        self.available = sorted(set(available))
        if name in self.available:
            msg = f"no signature of {contract}.{name} accepts the sample arguments"
        elif self.available:
            ops = ", ".join(self.available)
            msg = f"{contract} has no operation {name!r} (operations: {ops})"
        else:
            msg = f"{contract} has no operation {name!r}"
        super().__init__(msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Argument shapes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Nullable:
    """A literal passed into an optional slot.

    Dispatch compares the wrapped value like any literal; the wrapper only
    asserts at registration that the parameter is declared to accept None.
    """

    value: Any


@dataclass(frozen=True, slots=True)
class Snapshot:
    """An external binding, evaluated once when the rule is registered."""

    getter: Callable[[], Any]

    def __post_init__(self) -> None:
        if not callable(self.getter):
            msg = f"Snapshot getter must be callable, got {type(self.getter).__name__}"
            raise UnsupportedCallShapeError(msg)


def snapshot_attr(target: Any, name: str) -> Snapshot:
    """Snapshot a field or property of ``target``."""
    return Snapshot(lambda: getattr(target, name))


@dataclass(frozen=True, slots=True)
class CapturedArgument:
    """One expected argument: its value and the type it was captured with."""

    value: Any
    type: Any


@dataclass(frozen=True, slots=True)
class SampleCall:
    """The targeted operation plus one captured argument per parameter.

    For a generic operation, ``instantiation`` holds the concrete type bound to
    each type parameter (None where the sample leaves it unbound).
    """

    operation: Operation
    arguments: tuple[CapturedArgument, ...]
    instantiation: tuple[type | None, ...] = ()

    @property
    def values(self) -> CallArgs:
        return tuple(a.value for a in self.arguments)


# ═══════════════════════════════════════════════════════════════════════════════
# Capture
# ═══════════════════════════════════════════════════════════════════════════════


def selector_name(selector: Any) -> str:
    """Operation name from a selector: a name, a function or a bound method."""
    if isinstance(selector, str):
        return selector
    if inspect.isfunction(selector) or inspect.ismethod(selector):
        return selector.__name__
    msg = f"operation selector must be a name or a function, got {type(selector).__name__}"
    raise UnsupportedCallShapeError(msg)


def capture_sample_call(
    contract: str,
    operations: tuple[Operation, ...],
    selector: Any,
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
) -> SampleCall:
    """Resolve a sample call to its operation and captured arguments.

    Raises:
        UnsupportedCallShapeError: bad selector or argument shape.
        UnknownOperationError: no operation accepts the call.
    """
    name = selector_name(selector)
    candidates = [op for op in operations if op.name == name]
    if not candidates:
        raise UnknownOperationError(contract, name, [op.name for op in operations])

    positional = tuple(_capture_argument(a) for a in args)
    keyword = {k: _capture_argument(v) for k, v in kwargs.items()}

    match = resolve_overload(
        candidates,
        tuple(c.value for c in positional),
        {k: c.value for k, c in keyword.items()},
        is_wildcard=lambda v: isinstance(v, ArgumentMatcher),
    )
    if match is None:
        raise UnknownOperationError(contract, name, [op.name for op in operations])
    operation, values = match

    bound = operation.signature.bind(*positional, **keyword)
    bound.apply_defaults()
    arguments = tuple(
        _align(bound.arguments[p], value)
        for p, value in zip(operation.signature.parameters, values)
    )
    _check_nullable_slots(operation, arguments)
    return SampleCall(
        operation=operation,
        arguments=arguments,
        instantiation=_sample_instantiation(operation, arguments),
    )


def capture_operation(
    contract: str,
    operations: tuple[Operation, ...],
    selector: Any,
) -> SampleCall:
    """Resolve a selector without sample arguments.

    Only unambiguous, non-generic operations can be identified this way;
    overloads and generic operations need sample arguments.
    """
    name = selector_name(selector)
    candidates = [op for op in operations if op.name == name]
    if not candidates:
        raise UnknownOperationError(contract, name, [op.name for op in operations])
    if len(candidates) > 1 or candidates[0].is_generic:
        msg = f"{contract}.{name} is overloaded or generic; pass sample arguments"
        raise UnsupportedCallShapeError(msg)
    operation = candidates[0]
    return SampleCall(operation=operation, arguments=())


def _capture_argument(arg: Any) -> CapturedArgument:
    match arg:
        case Nullable(value=Nullable() | Snapshot() as inner):
            msg = f"Nullable() wraps literals only, got {type(inner).__name__}"
            raise UnsupportedCallShapeError(msg)
        case Nullable(value=value):
            if isinstance(value, ArgumentMatcher):
                msg = f"Nullable() wraps literals only, got {type(value).__name__}"
                raise UnsupportedCallShapeError(msg)
            return CapturedArgument(value, type(value) | None)
        case Snapshot(getter=getter):
            value = getter()
            return CapturedArgument(value, type(value))
        case _:
            return CapturedArgument(arg, type(arg))


def _align(raw: Any, value: Any) -> CapturedArgument:
    # Defaults come back from apply_defaults() as plain values; *args and
    # **kwargs come back as containers of captured arguments.
    if isinstance(raw, CapturedArgument):
        return raw
    return CapturedArgument(value, type(value))


def _check_nullable_slots(operation: Operation, arguments: tuple[CapturedArgument, ...]) -> None:
    for param, annotation, argument in zip(
        operation.signature.parameters, operation.parameter_types, arguments
    ):
        if not is_union(argument.type) or isinstance(annotation, TypeVar):
            continue
        if not allows_none(annotation):
            msg = (
                f"Nullable() targets an optional slot; {operation.name}({param}) is "
                f"annotated {getattr(annotation, '__qualname__', annotation)!s} and never gets None"
            )
            raise UnsupportedCallShapeError(msg)


def _binding_type(argument: CapturedArgument) -> type | None:
    value = argument.value
    if isinstance(value, ArgumentMatcher):
        return getattr(value, "value_type", None)
    return type(value)


def _sample_instantiation(
    operation: Operation, arguments: tuple[CapturedArgument, ...]
) -> tuple[type | None, ...]:
    if not operation.is_generic:
        return ()
    value_types = tuple(_binding_type(a) for a in arguments)
    instantiation = infer_instantiation(
        operation, tuple(a.value for a in arguments), value_types
    )
    bound = dict(zip(operation.type_params, instantiation))
    for annotation, argument, value_type in zip(operation.parameter_types, arguments, value_types):
        param = binding_param(annotation)
        if param is None or bound.get(param) is not None:
            continue
        if isinstance(argument.value, ArgumentMatcher) and value_type is None:
            msg = (
                f"{type(argument.value).__name__}() leaves type parameter {param.__name__} of "
                f"{operation.name} unbound; use InstanceOf(cls) to pick the instantiation"
            )
            raise UnsupportedCallShapeError(msg)
    return instantiation
