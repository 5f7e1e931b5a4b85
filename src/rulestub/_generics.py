"""Generic-operation resolution.

A generic operation (one whose annotations keep free type parameters) is
dispatched per concrete instantiation. Python has no explicit type arguments
at a call site, so the instantiation is inferred from the arguments, the same
way at registration and at call time:

| Parameter annotation | Binds T to                          |
|----------------------|-------------------------------------|
| ``T``                | ``type(value)``                     |
| ``type[T]``          | ``value`` itself                    |
| ``T | None``         | ``type(value)`` unless value is None |

The first parameter that binds a type parameter wins. A type parameter no
parameter binds is reported as None (unbound). Instantiations are compared
by type identity: a ``bool`` argument never selects the ``int`` group.
"""

from __future__ import annotations

import types
import typing
from typing import TYPE_CHECKING, Any, TypeVar

from rulestub._reflect import substitute

if TYPE_CHECKING:
    from rulestub._reflect import Operation
    from rulestub._types import CallArgs

type Instantiation = tuple[type | None, ...]


def infer_instantiation(
    operation: Operation,
    values: CallArgs,
    value_types: tuple[type | None, ...] | None = None,
) -> Instantiation:
    """Infer the concrete type bound to each of the operation's type parameters.

    ``value_types`` overrides ``type(value)`` per position; sample calls use it
    for argument matchers, whose own type says nothing about the values they
    stand for.
    """
    if not operation.type_params:
        return ()
    if value_types is None:
        value_types = tuple(type(v) for v in values)

    bindings: dict[TypeVar, type | None] = {}
    for annotation, value, value_type in zip(operation.parameter_types, values, value_types):
        param, bound = _bind(annotation, value, value_type)
        if param is not None and bound is not None:
            bindings.setdefault(param, bound)
    return tuple(bindings.get(tp) for tp in operation.type_params)


def binding_param(annotation: Any) -> TypeVar | None:
    """The type parameter an annotation binds (``T``, ``type[T]``, ``T | None``), if any."""
    return _bind(annotation, None, None)[0]


def _bind(annotation: Any, value: Any, value_type: type | None) -> tuple[TypeVar | None, type | None]:
    if isinstance(annotation, TypeVar):
        return annotation, value_type

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is type and len(args) == 1 and isinstance(args[0], TypeVar):
        return args[0], value if isinstance(value, type) else None

    if origin in (typing.Union, types.UnionType):
        others = [a for a in args if a is not types.NoneType]
        if len(others) == 1 and isinstance(others[0], TypeVar) and len(args) == 2:
            return others[0], None if value is None else value_type

    return None, None


def instantiate(annotation: Any, operation: Operation, instantiation: Instantiation) -> Any:
    """Substitute the bound types of an instantiation into an annotation."""
    mapping = {
        tp: bound
        for tp, bound in zip(operation.type_params, instantiation)
        if bound is not None
    }
    return substitute(annotation, mapping)


def describe(instantiation: Instantiation) -> str:
    """Human-readable form of an instantiation for error messages."""
    names = ("?" if t is None else getattr(t, "__qualname__", repr(t)) for t in instantiation)
    return "[" + ", ".join(names) + "]"
