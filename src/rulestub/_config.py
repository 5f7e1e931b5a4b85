"""Declarative rule configuration.

Matching rules can be described as data (JSON-shaped dicts or YAML files) and
registered with ``Double.load()``:

  dict/YAML → parse_double_config() → DoubleConfig → Double.load() → rules

```yaml
rules:
  - operation: echo_int
    args: [1]
    returns: 1
  - operation: lookup
    args: [{match: {Prefix: "user:", ignore_case: true}}]
    returns: found
  - operation: echo_string
    args: [null]
    raises: ValueError
```

Relationship to runtime types:

| Config type    | Runtime value                     |
|----------------|-----------------------------------|
| LiteralArg     | the value itself                  |
| NullableArg    | Nullable(value)                   |
| MatchArg       | AnyValue, Exact, Prefix, ... Regex |
| ReturnsConfig  | RuleHandle.returns(value)         |
| RaisesConfig   | RuleHandle.throws(exception type) |
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from rulestub._types import StubError

MAX_PATTERN_LENGTH = 8192
MAX_REGEX_PATTERN_LENGTH = 4096

# ═══════════════════════════════════════════════════════════════════════════════
# Config types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LiteralArg:
    """Expected value compared by equality."""

    value: Any


@dataclass(frozen=True, slots=True)
class NullableArg:
    """Expected value for an optional slot."""

    value: Any


@dataclass(frozen=True, slots=True)
class MatchArg:
    """Argument matcher: ``Any`` or a string match variant.

    The variant name follows the ``{ "Prefix": "/api" }`` format.
    """

    variant: str
    value: str | None = None
    ignore_case: bool = False


type ArgConfig = LiteralArg | NullableArg | MatchArg


@dataclass(frozen=True, slots=True)
class ReturnsConfig:
    value: Any


@dataclass(frozen=True, slots=True)
class RaisesConfig:
    """Exception class named by a builtin name or a dotted path."""

    exception: str


type CompletionConfig = ReturnsConfig | RaisesConfig


@dataclass(frozen=True, slots=True)
class RuleConfig:
    """One matching rule: operation name, expected arguments, completion."""

    operation: str
    completion: CompletionConfig
    args: tuple[ArgConfig, ...] = ()
    kwargs: dict[str, ArgConfig] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DoubleConfig:
    """Ordered matching rules for one double."""

    rules: tuple[RuleConfig, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing (dict → config types)
# ═══════════════════════════════════════════════════════════════════════════════

_STRING_MATCH_VARIANTS = frozenset({"Exact", "Prefix", "Suffix", "Contains", "Regex"})

# Single-key dicts with these keys are argument shapes, not literal dicts.
_ARG_SHAPE_KEYS = frozenset({"nullable", "match", "literal"})


class ConfigParseError(StubError):
    """Error parsing a config dict into config types."""


def load_double_config(path: str | Path) -> DoubleConfig:
    """Read a YAML rule file and parse it.

    Raises:
        ConfigParseError: the file is not valid YAML or not a valid config.
    """
    try:
        with Path(path).open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"invalid YAML in {path}: {e}"
        raise ConfigParseError(msg) from e
    return parse_double_config(data)


def parse_double_config(data: dict[str, Any]) -> DoubleConfig:
    """Parse a dict into a DoubleConfig.

    Raises:
        ConfigParseError: If the dict is malformed.
    """
    if not isinstance(data, dict):
        msg = f"expected dict, got {type(data).__name__}"
        raise ConfigParseError(msg)

    raw_rules = data.get("rules")
    if raw_rules is None:
        msg = "missing required field 'rules'"
        raise ConfigParseError(msg)
    if not isinstance(raw_rules, list):
        msg = f"'rules' must be a list, got {type(raw_rules).__name__}"
        raise ConfigParseError(msg)

    return DoubleConfig(rules=tuple(_parse_rule(r) for r in raw_rules))


def _parse_rule(data: dict[str, Any]) -> RuleConfig:
    """Parse a rule dict. Enforces oneof: exactly one of returns or raises."""
    if not isinstance(data, dict):
        msg = f"rule must be a dict, got {type(data).__name__}"
        raise ConfigParseError(msg)

    operation = data.get("operation")
    if operation is None:
        msg = "rule missing required field 'operation'"
        raise ConfigParseError(msg)
    if not isinstance(operation, str):
        msg = f"'operation' must be a string, got {type(operation).__name__}"
        raise ConfigParseError(msg)

    has_returns = "returns" in data
    has_raises = "raises" in data
    if has_returns and has_raises:
        msg = f"rule for {operation!r}: exactly one of 'returns' or 'raises' must be set, got both"
        raise ConfigParseError(msg)
    if not has_returns and not has_raises:
        msg = f"rule for {operation!r}: one of 'returns' or 'raises' is required"
        raise ConfigParseError(msg)

    completion: CompletionConfig
    if has_returns:
        completion = ReturnsConfig(value=data["returns"])
    else:
        raises = data["raises"]
        if not isinstance(raises, str):
            msg = f"'raises' must be an exception name, got {type(raises).__name__}"
            raise ConfigParseError(msg)
        completion = RaisesConfig(exception=raises)

    raw_args = data.get("args", [])
    if not isinstance(raw_args, list):
        msg = f"'args' must be a list, got {type(raw_args).__name__}"
        raise ConfigParseError(msg)
    raw_kwargs = data.get("kwargs", {})
    if not isinstance(raw_kwargs, dict):
        msg = f"'kwargs' must be a dict, got {type(raw_kwargs).__name__}"
        raise ConfigParseError(msg)

    return RuleConfig(
        operation=operation,
        completion=completion,
        args=tuple(_parse_arg(a) for a in raw_args),
        kwargs={str(k): _parse_arg(v) for k, v in raw_kwargs.items()},
    )


def _parse_arg(data: Any) -> ArgConfig:
    """Parse one expected argument.

    Literals pass through. ``{nullable: x}``, ``{match: ...}`` and
    ``{literal: x}`` (a literal that would otherwise read as a shape) are
    single-key dicts.
    """
    if not (isinstance(data, dict) and len(data) == 1 and next(iter(data)) in _ARG_SHAPE_KEYS):
        return LiteralArg(value=data)

    if "literal" in data:
        return LiteralArg(value=data["literal"])
    if "nullable" in data:
        value = data["nullable"]
        if isinstance(value, dict) and len(value) == 1 and next(iter(value)) in _ARG_SHAPE_KEYS:
            msg = f"'nullable' wraps literals only, got {value!r}"
            raise ConfigParseError(msg)
        return NullableArg(value=value)
    return _parse_match(data["match"])


def _parse_match(data: Any) -> MatchArg:
    """Parse a match config: ``Any`` or ``{ "Exact": "hello", "ignore_case": true }``."""
    if data == "Any":
        return MatchArg(variant="Any")
    if not isinstance(data, dict):
        msg = f"match must be 'Any' or a dict, got {data!r}"
        raise ConfigParseError(msg)

    ignore_case = data.get("ignore_case", False)
    if not isinstance(ignore_case, bool):
        msg = f"ignore_case must be a boolean, got {type(ignore_case).__name__}"
        raise ConfigParseError(msg)

    variants = [k for k in data if k in _STRING_MATCH_VARIANTS]
    unknown = sorted(set(data) - _STRING_MATCH_VARIANTS - {"ignore_case"})
    if len(variants) != 1 or unknown:
        expected = sorted(_STRING_MATCH_VARIANTS)
        msg = f"match must contain exactly one of {expected}, got keys: {sorted(data.keys())}"
        raise ConfigParseError(msg)

    variant = variants[0]
    value = data[variant]
    if not isinstance(value, str):
        msg = f"match {variant} value must be a string, got {type(value).__name__}"
        raise ConfigParseError(msg)
    if variant == "Regex" and ignore_case:
        msg = "ignore_case is not supported for Regex; use (?i) in the pattern"
        raise ConfigParseError(msg)
    _check_pattern_length(variant, value)
    return MatchArg(variant=variant, value=value, ignore_case=ignore_case)


def _check_pattern_length(variant: str, value: str) -> None:
    limit = MAX_REGEX_PATTERN_LENGTH if variant == "Regex" else MAX_PATTERN_LENGTH
    if len(value) > limit:
        msg = f"{variant} pattern length {len(value)} exceeds maximum {limit}"
        raise ConfigParseError(msg)
