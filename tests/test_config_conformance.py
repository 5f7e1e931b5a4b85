"""Config conformance tests for rulestub.

Runs the YAML fixtures under tests/fixtures/ through the declarative path:
parse_double_config() → Double.load() → calls on the synthesized instance.

Run with: uv run pytest tests/test_config_conformance.py -v
"""

from __future__ import annotations

import builtins
import importlib
from typing import TYPE_CHECKING, Any

import pytest

import rulestub
from rulestub import ConfigParseError, StubError, double_of, parse_double_config
from rulestub.testing import CONTRACTS

if TYPE_CHECKING:
    from conftest import ConformanceCase


def _error_type(name: str) -> type[BaseException]:
    """Resolve an expected error: a rulestub error, a builtin, or a dotted path."""
    if "." in name:
        module_name, _, attr = name.rpartition(".")
        return getattr(importlib.import_module(module_name), attr)
    return getattr(rulestub, name, None) or getattr(builtins, name)


def test_config_positive(conformance_case: ConformanceCase) -> None:
    """Positive fixture: parse, load and call must behave as declared."""
    case = conformance_case
    double = double_of(CONTRACTS[case.contract])
    double.load(parse_double_config(case.config))
    method = getattr(double.instance, case.call)

    if case.expect_error is not None:
        with pytest.raises(_error_type(case.expect_error)):
            method(*case.args, **case.kwargs)
        return

    actual = method(*case.args, **case.kwargs)
    assert actual == case.expect, (
        f"Fixture '{case.fixture_name}' case '{case.case_name}': "
        f"expected {case.expect!r}, got {actual!r}"
    )


def test_config_error(error_fixture: dict[str, Any]) -> None:
    """Error fixture: either parse or load must fail."""
    try:
        config = parse_double_config(error_fixture["config"])
    except ConfigParseError:
        return

    double = double_of(CONTRACTS[error_fixture["contract"]])
    with pytest.raises(StubError):
        double.load(config)
