"""Conformance fixture loader for rulestub.

Loads YAML fixtures from tests/fixtures/ and parametrizes every test that
asks for a ``conformance_case`` (positive fixtures) or an ``error_fixture``
(configs that must fail to parse or load).

Fixture format (one or more YAML documents per file):

    name: echo_int_exact
    contract: EchoContract        # key of rulestub.testing.CONTRACTS
    config: {rules: [...]}        # parse_double_config() payload
    cases:
      - name: registered value
        call: echo_int
        args: [1]
        expect: 1
      - name: unregistered value
        call: echo_int
        args: [2]
        expect_error: NotStubbedError
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
import yaml

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures"


@dataclass
class ConformanceCase:
    """A single call against a double loaded from a fixture config."""

    fixture_name: str
    case_name: str
    contract: str
    config: dict[str, Any]
    call: str
    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)
    expect: Any = None
    expect_error: str | None = None


# ─── Fixture loading ────────────────────────────────────────────────────────


def _load_documents() -> list[dict[str, Any]]:
    docs: list[dict[str, Any]] = []
    if not FIXTURE_DIR.exists():
        return docs
    for yaml_file in sorted(FIXTURE_DIR.glob("*.yaml")):
        with yaml_file.open() as f:
            for doc in yaml.safe_load_all(f):
                if doc is None:
                    continue
                doc["_source"] = yaml_file.name
                docs.append(doc)
    return docs


def load_conformance_cases() -> list[ConformanceCase]:
    """Flatten every positive fixture into one case per call."""
    cases: list[ConformanceCase] = []
    for doc in _load_documents():
        if doc.get("expect_error", False):
            continue
        for case in doc["cases"]:
            cases.append(
                ConformanceCase(
                    fixture_name=f"{doc['_source']}::{doc['name']}",
                    case_name=case["name"],
                    contract=doc["contract"],
                    config=doc["config"],
                    call=case["call"],
                    args=case.get("args", []),
                    kwargs=case.get("kwargs", {}),
                    expect=case.get("expect"),
                    expect_error=case.get("expect_error"),
                )
            )
    return cases


def load_error_fixtures() -> list[dict[str, Any]]:
    """Fixtures whose config must be rejected."""
    return [doc for doc in _load_documents() if doc.get("expect_error", False)]


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if "conformance_case" in metafunc.fixturenames:
        cases = load_conformance_cases()
        metafunc.parametrize(
            "conformance_case",
            cases,
            ids=[f"{c.fixture_name}::{c.case_name}" for c in cases],
        )
    if "error_fixture" in metafunc.fixturenames:
        fixtures = load_error_fixtures()
        metafunc.parametrize(
            "error_fixture",
            fixtures,
            ids=[f"{f['_source']}::{f['name']}" for f in fixtures],
        )
