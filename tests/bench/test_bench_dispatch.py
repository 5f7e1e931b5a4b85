"""Dispatch benchmarks for rulestub.

Measures the three phases of a double's life: registering rules,
synthesizing the proxy, and dispatching calls through the branch chain
(hit, last-rule hit, miss, generic instantiation lookup).

Run: uv run pytest tests/bench/test_bench_dispatch.py --benchmark-only
"""

from __future__ import annotations

import pytest

from rulestub import NotStubbedError, Prefix, Regex, double_of, parse_double_config
from rulestub.testing import Converter, EchoContract


def _echo_with_rules(n: int):  # noqa: ANN202
    echo = double_of(EchoContract)
    for i in range(n):
        echo.rule(EchoContract.echo_int, i).returns(i)
    return echo


def _raises_not_stubbed(call, *args) -> None:  # noqa: ANN001, ANN002
    try:
        call(*args)
    except NotStubbedError:
        return
    raise AssertionError("expected NotStubbedError")


# ── Registration ────────────────────────────────────────────────────────────


def test_bench_rule_10_register(benchmark):
    benchmark(_echo_with_rules, 10)


def test_bench_config_10_register(benchmark):
    config = parse_double_config(
        {"rules": [{"operation": "echo_int", "args": [i], "returns": i} for i in range(10)]}
    )
    benchmark(lambda: double_of(EchoContract).load(config))


# ── Synthesis ───────────────────────────────────────────────────────────────


def test_bench_proxy_10_synthesize(benchmark):
    def build():
        return _echo_with_rules(10).instance

    benchmark(build)


# ── Dispatch ────────────────────────────────────────────────────────────────


def test_bench_exact_hit_dispatch(benchmark):
    instance = _echo_with_rules(1).instance
    benchmark(instance.echo_int, 0)


@pytest.mark.parametrize("n", [10, 100])
def test_bench_rule_count_last_match_dispatch(benchmark, n):
    instance = _echo_with_rules(n).instance
    benchmark(instance.echo_int, n - 1)


def test_bench_rule_count_100_miss_dispatch(benchmark):
    instance = _echo_with_rules(100).instance
    benchmark(_raises_not_stubbed, instance.echo_int, -1)


def test_bench_prefix_matcher_dispatch(benchmark):
    echo = double_of(EchoContract)
    echo.rule(EchoContract.echo_string, Prefix("/api/")).returns("api")
    benchmark(echo.instance.echo_string, "/api/v2/users/123")


def test_bench_regex_matcher_dispatch(benchmark):
    echo = double_of(EchoContract)
    echo.rule(EchoContract.echo_string, Regex(r"^/api/v\d+/users/\d+$")).returns("user")
    benchmark(echo.instance.echo_string, "/api/v2/users/12345")


def test_bench_generic_instantiation_dispatch(benchmark):
    conv = double_of(Converter)
    for value in (1, "a", 1.5, b"b"):
        conv.rule(Converter.convert, value).returns(value)
    benchmark(conv.instance.convert, b"b")


def test_bench_implementation_dispatch(benchmark):
    echo = double_of(EchoContract)
    echo.rule_with_implementation(EchoContract.echo_int, lambda v: v)
    benchmark(echo.instance.echo_int, 7)
