"""Proxy synthesis — a concrete subclass of the contract, built at runtime.

The class is created with ``types.new_class`` and subclasses the contract
itself, so instances pass ``isinstance(obj, Contract)``. Every operation name
gets one method; overload variants sharing a name are told apart at call time
by the same resolution used when rules are registered.
"""

from __future__ import annotations

import logging
import types
from typing import TYPE_CHECKING, Any

from rulestub._dispatch import NotStubbedError, build_dispatch_body
from rulestub._reflect import (
    ContractError,
    abstract_attributes,
    contract_name,
    contract_origin,
    resolve_overload,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from rulestub._dispatch import MethodRule
    from rulestub._reflect import Operation
    from rulestub._types import DispatchTable, ProxyFactory

logger = logging.getLogger(__name__)


def synthesize_implementation(
    contract: Any,
    operations: tuple[Operation, ...],
    dispatch_table: DispatchTable,
) -> Any:
    """Build an instance of ``contract`` routing each call to its dispatch function.

    Raises:
        ContractError: the contract cannot be subclassed.
    """
    origin = contract_origin(contract)
    name = contract_name(contract)

    by_name: dict[str, list[Operation]] = {}
    for op in operations:
        by_name.setdefault(op.name, []).append(op)

    namespace: dict[str, Any] = {
        "__init__": _init,
        "__repr__": lambda self: f"<{name} double>",
        "__module__": origin.__module__,
    }
    for op_name, variants in by_name.items():
        namespace[op_name] = _method(op_name, tuple(variants), dispatch_table)
    for attr in abstract_attributes(origin):
        namespace.setdefault(attr, _unstubbed_property(attr))

    try:
        cls = types.new_class(
            f"{origin.__name__}Double", (origin,), exec_body=lambda ns: ns.update(namespace)
        )
        return cls()
    except TypeError as e:
        raise ContractError(contract, str(e)) from e


def synthesize(
    contract: Any,
    operations: tuple[Operation, ...],
    rules: Sequence[MethodRule],
    factory: ProxyFactory = synthesize_implementation,
) -> Any:
    """Wire ``rules`` into one dispatch body per operation and build the proxy."""
    table = {op: build_dispatch_body(op, rules) for op in operations}
    logger.debug(
        "synthesizing %s double: %d operations, %d rules",
        contract_name(contract),
        len(operations),
        len(rules),
    )
    return factory(contract, operations, table)


def _init(self: Any, *args: Any, **kwargs: Any) -> None:
    pass


def _method(
    name: str, variants: tuple[Operation, ...], table: DispatchTable
) -> Callable[..., Any]:
    def dispatch(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        match = resolve_overload(variants, args, kwargs)
        if match is None:
            msg = f"{name}() arguments match no declared signature"
            raise TypeError(msg)
        operation, values = match
        return table[operation](values)

    if any(v.is_async for v in variants):

        async def async_method(self: Any, *args: Any, **kwargs: Any) -> Any:
            return dispatch(args, kwargs)

        method = async_method
    else:

        def method(self: Any, *args: Any, **kwargs: Any) -> Any:
            return dispatch(args, kwargs)

    method.__name__ = name
    method.__qualname__ = name
    return method


def _unstubbed_property(name: str) -> property:
    def getter(self: Any) -> Any:
        raise NotStubbedError(name, "attributes cannot be stubbed")

    return property(getter)
