"""Reflection oracle — the abstract operations of a contract type.

A contract is an ``abc.ABC`` subclass, a ``typing.Protocol``, or a
parametrized generic contract such as ``Repository[User]``. Each abstract
method becomes one Operation; a method declared with ``typing.overload``
variants becomes one Operation per variant.

Operation identity is structural: name, parameter annotations, return
annotation and open type parameters. Parameter names and defaults travel with
the Operation (they are needed to bind calls) but do not take part in
equality.
"""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass, field
from typing import Any, TypeVar

from rulestub._types import StubError
from rulestub._values import is_assignable

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from rulestub._types import CallArgs


class ContractError(StubError):
    """The given type cannot be used as a contract."""

    def __init__(self, contract: Any, reason: str) -> None:
        self.contract = contract
        self.reason = reason
        super().__init__(f"cannot double {contract_name(contract)}: {reason}")


@dataclass(frozen=True, slots=True)
class Operation:
    """One abstract method of a contract, identified structurally."""

    name: str
    parameter_types: tuple[Any, ...]
    return_type: Any
    signature: inspect.Signature = field(compare=False, repr=False)
    type_params: tuple[TypeVar, ...] = ()
    is_async: bool = field(default=False, compare=False)

    @property
    def arity(self) -> int:
        return len(self.parameter_types)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_params)

    def bind(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> CallArgs:
        """Bind a call to this operation's parameters, defaults applied.

        Returns one value per parameter in declaration order. A ``*args``
        parameter contributes a tuple, a ``**kwargs`` parameter a dict.

        Raises:
            TypeError: the arguments do not fit the signature.
        """
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return tuple(bound.arguments[name] for name in self.signature.parameters)

    def accepts(
        self, values: CallArgs, is_wildcard: Callable[[Any], bool] | None = None
    ) -> bool:
        """Check bound values against the parameter annotations.

        Values for which ``is_wildcard`` returns True are accepted anywhere.
        """
        for param, annotation, value in zip(
            self.signature.parameters.values(), self.parameter_types, values
        ):
            match param.kind:
                case inspect.Parameter.VAR_POSITIONAL:
                    items = value
                case inspect.Parameter.VAR_KEYWORD:
                    items = value.values()
                case _:
                    items = (value,)
            if not all(
                (is_wildcard is not None and is_wildcard(item))
                or is_assignable(item, annotation)
                for item in items
            ):
                return False
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# Contract inspection
# ═══════════════════════════════════════════════════════════════════════════════


def contract_origin(contract: Any) -> type:
    """Return the class behind a (possibly parametrized) contract."""
    origin = typing.get_origin(contract) or contract
    if not isinstance(origin, type):
        raise ContractError(contract, "contract must be a class")
    return origin


def contract_name(contract: Any) -> str:
    origin = typing.get_origin(contract) or contract
    return getattr(origin, "__qualname__", repr(contract))


def list_operations(contract: Any) -> tuple[Operation, ...]:
    """List every operation a double of ``contract`` must implement.

    Raises:
        ContractError: not a class, nothing abstract to implement, or an
            annotation that cannot be resolved.
    """
    origin = contract_origin(contract)
    substitutions = _class_substitutions(contract, origin)

    operations: list[Operation] = []
    for name in _operation_names(origin):
        func = inspect.getattr_static(origin, name)
        for variant in typing.get_overloads(func) or [func]:
            operations.append(_build_operation(name, variant, origin, substitutions))

    if not operations and not abstract_attributes(origin):
        raise ContractError(contract, "it declares no abstract operations")
    return tuple(operations)


def abstract_attributes(contract: Any) -> tuple[str, ...]:
    """Abstract members that are not plain methods (properties, class methods).

    They are not stubbable but must still be overridden for the double's
    class to be instantiable.
    """
    origin = contract_origin(contract)
    return tuple(
        sorted(
            name
            for name in getattr(origin, "__abstractmethods__", ())
            if not inspect.isfunction(inspect.getattr_static(origin, name))
        )
    )


def resolve_overload(
    operations: list[Operation] | tuple[Operation, ...],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
    is_wildcard: Callable[[Any], bool] | None = None,
) -> tuple[Operation, CallArgs] | None:
    """Pick the operation a call targets among same-named operations.

    A lone operation only needs to bind. Among overload variants the first,
    in declaration order, whose signature binds and whose annotations accept
    the values wins.
    """
    for operation in operations:
        try:
            values = operation.bind(args, kwargs)
        except TypeError:
            continue
        if len(operations) == 1 or operation.accepts(values, is_wildcard):
            return operation, values
    return None


def _is_protocol(origin: type) -> bool:
    # typing sets _is_protocol on every class that lists Protocol as a base
    return bool(origin.__dict__.get("_is_protocol", False))


def _operation_names(origin: type) -> list[str]:
    abstract = getattr(origin, "__abstractmethods__", frozenset())
    protocol = _is_protocol(origin)

    ordered: dict[str, None] = {}
    for klass in reversed(origin.__mro__):
        if klass is object:
            continue
        for name in vars(klass):
            ordered.setdefault(name, None)

    names = []
    for name in ordered:
        if not inspect.isfunction(inspect.getattr_static(origin, name)):
            continue
        public = not name.startswith("_") or name == "__call__"
        if name in abstract or (protocol and public):
            names.append(name)
    return names


def _class_substitutions(contract: Any, origin: type) -> dict[Any, Any]:
    params = getattr(origin, "__parameters__", ())
    args = typing.get_args(contract)
    if not args:
        return {}
    return dict(zip(params, args, strict=False))


def _build_operation(
    name: str,
    func: Callable[..., Any],
    origin: type,
    substitutions: dict[Any, Any],
) -> Operation:
    hints = _resolve_hints(func, origin)
    signature = inspect.signature(func)
    params = list(signature.parameters.values())
    if not params or params[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise ContractError(origin, f"operation {name!r} does not take self")

    params = [
        p.replace(annotation=substitute(hints.get(p.name, Any), substitutions))
        for p in params[1:]
    ]
    return_type = substitute(hints.get("return", Any), substitutions)
    parameter_types = tuple(p.annotation for p in params)

    type_params = dict.fromkeys(
        tv
        for annotation in (*parameter_types, return_type)
        for tv in free_type_vars(annotation)
    )
    return Operation(
        name=name,
        parameter_types=parameter_types,
        return_type=return_type,
        signature=signature.replace(parameters=params, return_annotation=return_type),
        type_params=tuple(type_params),
        is_async=inspect.iscoroutinefunction(func),
    )


def _resolve_hints(func: Callable[..., Any], origin: type) -> dict[str, Any]:
    localns: dict[str, Any] = {origin.__name__: origin}
    for tp in (*getattr(origin, "__type_params__", ()), *getattr(func, "__type_params__", ())):
        localns[tp.__name__] = tp
    try:
        return typing.get_type_hints(func, localns=localns)
    except (NameError, TypeError) as e:
        msg = f"cannot resolve annotations of {func.__qualname__}: {e}"
        raise ContractError(origin, msg) from e


# ═══════════════════════════════════════════════════════════════════════════════
# Type-parameter helpers
# ═══════════════════════════════════════════════════════════════════════════════


def free_type_vars(annotation: Any) -> tuple[TypeVar, ...]:
    """TypeVars still open in an annotation, in order of appearance."""
    if isinstance(annotation, TypeVar):
        return (annotation,)
    if typing.get_origin(annotation) is None:
        return ()
    params = getattr(annotation, "__parameters__", ())
    return tuple(p for p in params if isinstance(p, TypeVar))


def substitute(annotation: Any, mapping: Mapping[Any, Any]) -> Any:
    """Replace TypeVars in an annotation with the types bound to them."""
    if not mapping:
        return annotation
    if isinstance(annotation, TypeVar):
        return mapping.get(annotation, annotation)
    if typing.get_origin(annotation) is None:
        return annotation
    params = getattr(annotation, "__parameters__", ())
    if not params:
        return annotation
    return annotation[tuple(mapping.get(p, p) for p in params)]
