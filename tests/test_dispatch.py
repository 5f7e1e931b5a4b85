"""Tests for dispatch bodies (rulestub._dispatch)."""

from __future__ import annotations

import logging

import pytest

from rulestub import NotStubbedError, list_operations
from rulestub._capture import capture_operation, capture_sample_call
from rulestub._dispatch import (
    BranchChain,
    Delegate,
    ImplementationRule,
    MatchingRule,
    Returns,
    Throws,
    build_dispatch_body,
)
from rulestub._predicate import predicate_for
from rulestub.testing import Converter, EchoContract

ECHO = {op.name: op for op in list_operations(EchoContract)}
CONVERTER = list_operations(Converter)


def matching(name: str, *args: object, value: object = None) -> MatchingRule:
    sample = capture_sample_call("EchoContract", tuple(ECHO.values()), name, args, {})
    return MatchingRule(sample, predicate_for(sample.values), Returns(value, sample.operation.return_type))


class TestCompletions:
    def test_returns_value(self) -> None:
        assert Returns(5, int).complete() == 5

    def test_returns_default_for_none(self) -> None:
        assert Returns(None, str).complete() == ""

    def test_returns_runs_callback_first(self) -> None:
        calls: list[str] = []
        Returns(1, int, callback=lambda: calls.append("cb")).complete()
        assert calls == ["cb"]

    def test_throws_builds_fresh_exception(self) -> None:
        throws = Throws(RuntimeError)
        assert throws.build() is not throws.build()
        with pytest.raises(RuntimeError):
            throws.complete()


class TestBuildDispatchBody:
    def test_no_rules_is_not_stubbed(self) -> None:
        body = build_dispatch_body(ECHO["echo_int"], [])
        assert dict(body.paths) == {}
        with pytest.raises(NotStubbedError) as exc_info:
            body((1,))
        assert exc_info.value.operation_name == "echo_int"

    def test_only_rules_for_the_operation_are_used(self) -> None:
        rules = [matching("echo_int", 1, value=1), matching("echo_string", "a", value="a")]
        body = build_dispatch_body(ECHO["echo_int"], rules)
        (path,) = body.paths.values()
        assert isinstance(path, BranchChain)
        assert len(path.rules) == 1

    def test_branch_chain_in_registration_order(self) -> None:
        rules = [matching("echo_int", 1, value=10), matching("echo_int", 1, value=20)]
        body = build_dispatch_body(ECHO["echo_int"], rules)
        assert body((1,)) == 10

    def test_implementation_rule_becomes_delegate(self) -> None:
        sample = capture_operation("EchoContract", tuple(ECHO.values()), "echo_int")
        rules = [matching("echo_int", 1, value=10), ImplementationRule(sample, lambda v: -v)]
        body = build_dispatch_body(ECHO["echo_int"], rules)

        assert isinstance(body.paths[()], Delegate)
        assert body((1,)) == -1

    def test_several_implementations_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        sample = capture_operation("EchoContract", tuple(ECHO.values()), "echo_int")
        rules = [ImplementationRule(sample, lambda v: 1), ImplementationRule(sample, lambda v: 2)]
        with caplog.at_level(logging.WARNING, logger="rulestub"):
            body = build_dispatch_body(ECHO["echo_int"], rules)
        assert body((0,)) == 1
        assert len(caplog.records) == 1

    def test_generic_rules_are_grouped_by_instantiation(self) -> None:
        convert = next(op for op in CONVERTER if op.name == "convert")
        int_rule = capture_sample_call("Converter", CONVERTER, "convert", (1,), {})
        str_rule = capture_sample_call("Converter", CONVERTER, "convert", ("a",), {})
        rules = [
            MatchingRule(int_rule, predicate_for(int_rule.values), Returns(2, int)),
            MatchingRule(str_rule, predicate_for(str_rule.values), Returns("b", str)),
        ]
        body = build_dispatch_body(convert, rules)

        assert set(body.paths) == {(int,), (str,)}
        assert body((1,)) == 2
        assert body(("a",)) == "b"
        with pytest.raises(NotStubbedError, match="no rule for instantiation"):
            body((1.0,))
