"""Tests for the reflection oracle (rulestub._reflect)."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, TypeVar

import pytest

from rulestub import ContractError, list_operations
from rulestub._reflect import (
    abstract_attributes,
    contract_name,
    free_type_vars,
    resolve_overload,
    substitute,
)
from rulestub.testing import (
    AsyncFetcher,
    Calculator,
    Concrete,
    Converter,
    EchoContract,
    Greeter,
    Repository,
)

T = TypeVar("T")


def _by_name(contract: Any) -> dict[str, list[Any]]:
    ops: dict[str, list[Any]] = {}
    for op in list_operations(contract):
        ops.setdefault(op.name, []).append(op)
    return ops


class TestListOperations:
    def test_abc_lists_abstract_methods_in_declaration_order(self) -> None:
        names = [op.name for op in list_operations(EchoContract)]
        assert names == [
            "echo_int",
            "echo_nullable_int",
            "echo_string",
            "echo_color",
            "echo_point",
            "echo_nullable_point",
            "echo_pair",
            "combine",
            "notify",
            "version",
        ]

    def test_annotations_are_resolved(self) -> None:
        ops = _by_name(EchoContract)
        echo_int = ops["echo_int"][0]
        assert echo_int.parameter_types == (int,)
        assert echo_int.return_type is int
        assert ops["echo_nullable_int"][0].parameter_types == (int | None,)
        assert ops["notify"][0].return_type is None or ops["notify"][0].return_type is type(None)

    def test_self_is_not_a_parameter(self) -> None:
        version = _by_name(EchoContract)["version"][0]
        assert version.arity == 0
        assert list(version.signature.parameters) == []

    def test_keyword_only_parameters_are_kept(self) -> None:
        combine = _by_name(EchoContract)["combine"][0]
        assert combine.arity == 3
        sep = combine.signature.parameters["sep"]
        assert sep.kind is inspect.Parameter.KEYWORD_ONLY
        assert sep.default == " "

    def test_overloads_become_separate_operations(self) -> None:
        variants = _by_name(Calculator)["add"]
        assert [v.parameter_types for v in variants] == [(int, int), (str, str)]
        assert variants[0] != variants[1]

    def test_abstract_property_is_not_an_operation(self) -> None:
        assert "precision" not in _by_name(Calculator)
        assert abstract_attributes(Calculator) == ("precision",)

    def test_protocol_lists_public_methods_and_call(self) -> None:
        assert set(_by_name(Greeter)) == {"greet", "__call__"}

    def test_method_type_parameters_make_an_operation_generic(self) -> None:
        convert = _by_name(Converter)["convert"][0]
        assert convert.is_generic
        assert len(convert.type_params) == 1
        assert convert.return_type is convert.type_params[0]

    def test_parametrized_contract_substitutes_class_parameters(self) -> None:
        ops = _by_name(Repository[int, str])
        assert ops["get"][0].parameter_types == (int,)
        assert ops["get"][0].return_type is str
        assert not ops["get"][0].is_generic

    def test_unparametrized_generic_contract_keeps_type_parameters(self) -> None:
        get = _by_name(Repository)["get"][0]
        assert get.is_generic

    def test_async_operations_are_flagged(self) -> None:
        assert all(op.is_async for op in list_operations(AsyncFetcher))

    def test_concrete_class_is_rejected(self) -> None:
        with pytest.raises(ContractError, match="no abstract operations"):
            list_operations(Concrete)

    def test_non_class_is_rejected(self) -> None:
        with pytest.raises(ContractError, match="must be a class"):
            list_operations(42)

    def test_unresolvable_annotation_is_rejected(self) -> None:
        class Broken(ABC):
            @abstractmethod
            def run(self, value: "DoesNotExist") -> None: ...  # noqa: F821

        with pytest.raises(ContractError, match="cannot resolve annotations"):
            list_operations(Broken)

    def test_unannotated_parameters_are_any(self) -> None:
        class Loose(ABC):
            @abstractmethod
            def run(self, value): ...

        (run,) = list_operations(Loose)
        assert run.parameter_types == (Any,)
        assert run.return_type is Any


class TestOperationIdentity:
    def test_equal_structure_is_equal_identity(self) -> None:
        class Other(ABC):
            @abstractmethod
            def echo_int(self, renamed: int) -> int: ...

        (theirs,) = list_operations(Other)
        ours = _by_name(EchoContract)["echo_int"][0]
        assert theirs == ours
        assert hash(theirs) == hash(ours)

    def test_return_type_is_part_of_identity(self) -> None:
        class Other(ABC):
            @abstractmethod
            def echo_int(self, value: int) -> str: ...

        (theirs,) = list_operations(Other)
        assert theirs != _by_name(EchoContract)["echo_int"][0]


class TestResolveOverload:
    def test_first_accepting_variant_wins(self) -> None:
        variants = _by_name(Calculator)["add"]
        op, values = resolve_overload(variants, ("a", "b"), {})
        assert op is variants[1]
        assert values == ("a", "b")

    def test_no_variant_accepts(self) -> None:
        variants = _by_name(Calculator)["add"]
        assert resolve_overload(variants, (1, "b"), {}) is None

    def test_lone_operation_only_needs_to_bind(self) -> None:
        echo = _by_name(EchoContract)["echo_int"]
        op, values = resolve_overload(echo, ("not an int",), {})
        assert values == ("not an int",)
        assert resolve_overload(echo, (), {}) is None

    def test_wildcards_are_accepted_anywhere(self) -> None:
        variants = _by_name(Calculator)["add"]
        marker = object()
        op, _ = resolve_overload(variants, (marker, "b"), {}, is_wildcard=lambda v: v is marker)
        assert op is variants[1]


class TestTypeParameterHelpers:
    def test_free_type_vars(self) -> None:
        assert free_type_vars(T) == (T,)
        assert free_type_vars(list[T]) == (T,)
        assert free_type_vars(int) == ()

    def test_substitute(self) -> None:
        assert substitute(T, {T: int}) is int
        assert substitute(list[T], {T: str}) == list[str]
        assert substitute(int, {T: str}) is int

    def test_contract_name(self) -> None:
        assert contract_name(Repository[int, str]) == "Repository"
        assert contract_name(EchoContract) == "EchoContract"
