"""Sample contracts for tests and examples.

These are NOT part of the doubling engine. They cover the contract shapes
rulestub supports (ABC, Protocol, overloads, generic operations, generic
contracts, async operations) so tests, benches and conformance fixtures share
one vocabulary.

>>> from rulestub import double_of
>>> from rulestub.testing import EchoContract
>>> echo = double_of(EchoContract)
>>> echo.rule(EchoContract.echo_int, 1).returns(1)  # doctest: +ELLIPSIS
<rulestub._double.ReturnsHandle object at ...>
>>> echo.instance.echo_int(1)
1
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol, overload, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


class Color(enum.Enum):
    BLACK = 0
    RED = 1
    GREEN = 2


class Permission(enum.Flag):
    READ = 1
    WRITE = 2


@dataclass(frozen=True, slots=True)
class Point:
    x: int
    y: int
    label: str = "origin"


class Pair(NamedTuple):
    key: str
    count: int


class EchoContract(ABC):
    """Operations covering primitives, nullables, enums and structs."""

    @abstractmethod
    def echo_int(self, value: int) -> int: ...

    @abstractmethod
    def echo_nullable_int(self, value: int | None) -> int | None: ...

    @abstractmethod
    def echo_string(self, value: str) -> str: ...

    @abstractmethod
    def echo_color(self, value: Color) -> Color: ...

    @abstractmethod
    def echo_point(self, value: Point) -> Point: ...

    @abstractmethod
    def echo_nullable_point(self, value: Point | None) -> Point | None: ...

    @abstractmethod
    def echo_pair(self, value: Pair) -> Pair: ...

    @abstractmethod
    def combine(self, left: str, right: str = "", *, sep: str = " ") -> str: ...

    @abstractmethod
    def notify(self, message: str) -> None: ...

    @abstractmethod
    def version(self) -> str: ...


class Calculator(ABC):
    """Overloaded operation plus an abstract property."""

    @overload
    def add(self, a: int, b: int) -> int: ...

    @overload
    def add(self, a: str, b: str) -> str: ...

    @abstractmethod
    def add(self, a: Any, b: Any) -> Any: ...

    @property
    @abstractmethod
    def precision(self) -> int: ...


class Converter(ABC):
    """Operations generic over their own type parameters."""

    @abstractmethod
    def convert[T](self, value: T) -> T: ...

    @abstractmethod
    def create[T](self, kind: type[T]) -> T: ...

    @abstractmethod
    def first_or_none[T](self, value: T | None) -> T | None: ...


class Repository[K, V](ABC):
    """Generic contract; parametrize it (``Repository[int, str]``) to double it."""

    @abstractmethod
    def get(self, key: K) -> V: ...

    @abstractmethod
    def put(self, key: K, value: V) -> None: ...

    @abstractmethod
    def count(self) -> int: ...


@runtime_checkable
class Greeter(Protocol):
    """Protocol contract; public methods and __call__ are its operations."""

    def greet(self, name: str) -> str: ...

    def __call__(self, name: str) -> str: ...


class AsyncFetcher(ABC):
    @abstractmethod
    async def fetch(self, url: str) -> bytes: ...

    @abstractmethod
    async def status(self, url: str) -> int: ...


class Concrete:
    """Not a contract: nothing to override."""

    def run(self) -> None:
        pass


CONTRACTS: Mapping[str, type] = {
    "EchoContract": EchoContract,
    "Calculator": Calculator,
    "Converter": Converter,
    "Greeter": Greeter,
    "AsyncFetcher": AsyncFetcher,
}
