"""Value synthesis and assignability checks against annotations.

Default synthesis backs Returns completions whose stored value is None while
the operation's return annotation is not optional. The supported categories
are enumerated up front; everything else fails loudly:

| Annotation                         | Default                       |
|------------------------------------|-------------------------------|
| None, Any, object, unannotated     | None                          |
| X | None, Optional[X]              | None                          |
| bool, int, float, complex          | False, 0, 0.0, 0j             |
| str, bytes                         | "", b""                       |
| Enum subclass                      | member with value 0           |
| Flag subclass                      | the empty flag                |
| dataclass, NamedTuple              | fields defaulted recursively  |
"""

from __future__ import annotations

import dataclasses
import enum
import types
import typing
from typing import Any, TypeVar

from rulestub._types import StubError

_PRIMITIVE_DEFAULTS: dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    complex: 0j,
    str: "",
    bytes: b"",
}

# PEP 484 numeric tower: int is acceptable where float or complex is declared.
_NUMERIC_WIDENING: dict[type, tuple[type, ...]] = {
    float: (int, float),
    complex: (int, float, complex),
}


class DefaultValueError(StubError):
    """No default value can be synthesized for a type."""

    def __init__(self, annotation: Any, reason: str) -> None:
        self.annotation = annotation
        self.reason = reason
        super().__init__(f"cannot synthesize a default for {annotation!r}: {reason}")


def is_union(annotation: Any) -> bool:
    return typing.get_origin(annotation) in (typing.Union, types.UnionType)


def allows_none(annotation: Any) -> bool:
    """True when None is a legitimate value for the annotation."""
    if annotation is Any or annotation is object:
        return True
    if annotation is None or annotation is types.NoneType:
        return True
    if is_union(annotation):
        return types.NoneType in typing.get_args(annotation)
    return False


def default_value(annotation: Any) -> Any:
    """Synthesize the default ("zero") value for an annotation.

    Raises:
        DefaultValueError: the annotation is outside the supported categories.
    """
    return _default(annotation, frozenset())


def _default(annotation: Any, seen: frozenset[type]) -> Any:
    if allows_none(annotation):
        return None
    if isinstance(annotation, TypeVar):
        raise DefaultValueError(annotation, "type parameter is not bound")
    if typing.get_origin(annotation) is not None or not isinstance(annotation, type):
        raise DefaultValueError(annotation, "only plain classes have defaults")
    if annotation in seen:
        raise DefaultValueError(annotation, "struct refers to itself")

    if issubclass(annotation, enum.Enum):
        try:
            return annotation(0)
        except ValueError as e:
            raise DefaultValueError(annotation, "enum has no member with value 0") from e
    if annotation in _PRIMITIVE_DEFAULTS:
        return _PRIMITIVE_DEFAULTS[annotation]
    if dataclasses.is_dataclass(annotation):
        return _dataclass_default(annotation, seen | {annotation})
    if issubclass(annotation, tuple) and hasattr(annotation, "_fields"):
        return _namedtuple_default(annotation, seen | {annotation})

    raise DefaultValueError(annotation, "not a primitive, enum, nullable or simple struct")


def _field_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        raise DefaultValueError(cls, f"cannot resolve field annotations: {e}") from e


def _dataclass_default(cls: type, seen: frozenset[type]) -> Any:
    hints = _field_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        kwargs[f.name] = _default(hints.get(f.name, Any), seen)
    return cls(**kwargs)


def _namedtuple_default(cls: type, seen: frozenset[type]) -> Any:
    hints = _field_hints(cls)
    defaults = cls._field_defaults  # type: ignore[attr-defined]
    kwargs = {
        name: _default(hints.get(name, Any), seen)
        for name in cls._fields  # type: ignore[attr-defined]
        if name not in defaults
    }
    return cls(**kwargs)


def is_assignable(value: Any, annotation: Any) -> bool:
    """Best-effort runtime check of a value against an annotation.

    Annotations that cannot be checked at runtime (type parameters, callables,
    non-runtime protocols, NewType) accept every value.
    """
    if annotation is Any or annotation is object or isinstance(annotation, TypeVar):
        return True
    if annotation is None or annotation is types.NoneType:
        return value is None
    if is_union(annotation):
        return any(is_assignable(value, arg) for arg in typing.get_args(annotation))

    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return is_assignable(value, typing.get_args(annotation)[0])
    if origin is typing.Literal:
        return value in typing.get_args(annotation)
    if origin is type:
        return isinstance(value, type)
    if origin is not None:
        annotation = origin

    if not isinstance(annotation, type):
        return True
    if annotation in _NUMERIC_WIDENING:
        return isinstance(value, _NUMERIC_WIDENING[annotation])
    try:
        return isinstance(value, annotation)
    except TypeError:
        # Protocols without @runtime_checkable refuse isinstance().
        return True
