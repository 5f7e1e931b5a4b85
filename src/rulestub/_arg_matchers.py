"""Argument matchers usable as expected values in a sample call.

A matcher compares equal to every actual argument it accepts, the same idiom
as ``unittest.mock.ANY``. Because rule evaluation compares expected values
with ``==``, a matcher drops into any argument position without the dispatch
engine knowing about it. Plain values keep their natural equality.

Text matchers return False for non-string input. Regex uses ``google-re2``
for guaranteed linear-time matching. RE2 does not support backreferences or
lookaround because they require backtracking; such patterns are rejected at
construction time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

import re2

from rulestub._types import StubError


class _MatchesByEquality:
    """Mixin that routes ``==`` through ``matches()``."""

    __slots__ = ()

    # Concrete type a matched value has, used to infer generic instantiations.
    value_type: ClassVar[type | None] = None

    def matches(self, value: Any, /) -> bool:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        return self.matches(other)

    def __ne__(self, other: object) -> bool:
        return not self.matches(other)

    __hash__ = object.__hash__


@dataclass(frozen=True, slots=True, eq=False)
class AnyValue(_MatchesByEquality):
    """Matches every value, None included."""

    def matches(self, value: Any, /) -> bool:
        return True


@dataclass(frozen=True, slots=True, eq=False)
class InstanceOf(_MatchesByEquality):
    """Matches instances of ``cls`` (subclasses included)."""

    cls: type

    @property
    def value_type(self) -> type:  # type: ignore[override]
        return self.cls

    def matches(self, value: Any, /) -> bool:
        return isinstance(value, self.cls)


@dataclass(frozen=True, slots=True, eq=False)
class Exact(_MatchesByEquality):
    """Exact string equality, optionally case-insensitive.

    The comparison value is casefolded once at construction time.
    """

    value: str
    ignore_case: bool = False
    _cmp_value: str = field(init=False, repr=False)

    value_type: ClassVar[type | None] = str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_cmp_value", self.value.casefold() if self.ignore_case else self.value
        )

    def matches(self, value: Any, /) -> bool:
        if not isinstance(value, str):
            return False
        input_val = value.casefold() if self.ignore_case else value
        return input_val == self._cmp_value


@dataclass(frozen=True, slots=True, eq=False)
class Prefix(_MatchesByEquality):
    """String prefix match (startswith)."""

    prefix: str
    ignore_case: bool = False
    _cmp_prefix: str = field(init=False, repr=False)

    value_type: ClassVar[type | None] = str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_cmp_prefix", self.prefix.casefold() if self.ignore_case else self.prefix
        )

    def matches(self, value: Any, /) -> bool:
        if not isinstance(value, str):
            return False
        input_val = value.casefold() if self.ignore_case else value
        return input_val.startswith(self._cmp_prefix)


@dataclass(frozen=True, slots=True, eq=False)
class Suffix(_MatchesByEquality):
    """String suffix match (endswith)."""

    suffix: str
    ignore_case: bool = False
    _cmp_suffix: str = field(init=False, repr=False)

    value_type: ClassVar[type | None] = str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_cmp_suffix", self.suffix.casefold() if self.ignore_case else self.suffix
        )

    def matches(self, value: Any, /) -> bool:
        if not isinstance(value, str):
            return False
        input_val = value.casefold() if self.ignore_case else value
        return input_val.endswith(self._cmp_suffix)


@dataclass(frozen=True, slots=True, eq=False)
class Contains(_MatchesByEquality):
    """Substring search match."""

    substring: str
    ignore_case: bool = False
    _cmp_substring: str = field(init=False, repr=False)

    value_type: ClassVar[type | None] = str

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_cmp_substring",
            self.substring.casefold() if self.ignore_case else self.substring,
        )

    def matches(self, value: Any, /) -> bool:
        if not isinstance(value, str):
            return False
        input_val = value.casefold() if self.ignore_case else value
        return self._cmp_substring in input_val


@dataclass(frozen=True, slots=True, eq=False)
class Regex(_MatchesByEquality):
    """Regular expression search anywhere in the string.

    Raises:
        StubError: If the pattern is not valid RE2 syntax.
    """

    pattern: str
    _compiled: re2.Pattern[str] = field(init=False, repr=False)

    value_type: ClassVar[type | None] = str

    def __post_init__(self) -> None:
        try:
            compiled = re2.compile(self.pattern)
        except re2.error as e:
            msg = f'invalid regex pattern "{self.pattern}": {e}'
            raise StubError(msg) from e
        object.__setattr__(self, "_compiled", compiled)

    def matches(self, value: Any, /) -> bool:
        if not isinstance(value, str):
            return False
        return self._compiled.search(value) is not None
