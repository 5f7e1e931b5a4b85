"""Rule builder for a contract and its lazily synthesized proxy.

A Double records an ordered list of method rules, then synthesizes one
implementation of the contract on first access to ``instance``:

    repo = double_of(Repository)
    repo.rule(Repository.get, 1).returns(User("ada"))
    repo.rule(Repository.get, 2).throws(KeyError)
    repo.rule_with_implementation(Repository.count, lambda: 42)

    repo.instance.get(1)  # User("ada")
    repo.instance.get(3)  # NotStubbedError

The rule list is frozen once the instance exists. Registering afterwards is a
RegistrationError rather than a silent no-op.
"""

from __future__ import annotations

import builtins
import dataclasses
import importlib
import inspect
import logging
from typing import TYPE_CHECKING, Any

from rulestub._arg_matchers import AnyValue, Contains, Exact, Prefix, Regex, Suffix
from rulestub._capture import (
    Nullable,
    RegistrationError,
    capture_operation,
    capture_sample_call,
)
from rulestub._config import (
    ConfigParseError,
    LiteralArg,
    MatchArg,
    NullableArg,
    RaisesConfig,
    ReturnsConfig,
)
from rulestub._dispatch import ImplementationRule, MatchingRule, Returns, Throws
from rulestub._generics import describe, instantiate
from rulestub._predicate import predicate_for, predicate_width
from rulestub._proxy import synthesize, synthesize_implementation
from rulestub._reflect import contract_name, list_operations
from rulestub._types import StubError
from rulestub._values import default_value, is_assignable

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulestub._capture import SampleCall
    from rulestub._config import ArgConfig, DoubleConfig, RuleConfig
    from rulestub._dispatch import Completion, MethodRule
    from rulestub._reflect import Operation
    from rulestub._types import ProxyFactory, ReflectionOracle

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Error types
# ═══════════════════════════════════════════════════════════════════════════════


class ImplementationSignatureError(RegistrationError):
    """A delegate cannot be called with the operation's arguments."""

    def __init__(self, operation_name: str, arity: int, reason: str) -> None:
        self.operation_name = operation_name
        self.arity = arity
        self.reason = reason
        super().__init__(
            f"implementation of {operation_name} must accept {arity} "
            f"positional argument(s): {reason}"
        )


class ReturnTypeMismatchError(RegistrationError):
    """A return value does not fit the operation's declared return type."""

    def __init__(self, operation_name: str, value: Any, declared: Any) -> None:
        self.operation_name = operation_name
        self.value = value
        self.declared = declared
        super().__init__(
            f"{operation_name} is declared to return {declared!r}, "
            f"got {type(value).__name__} value {value!r}"
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Handles
# ═══════════════════════════════════════════════════════════════════════════════


class RuleHandle:
    """Attach a completion to a freshly registered matching rule.

    Until returns() or throws() is called the rule takes its place in the
    dispatch order but never matches.
    """

    __slots__ = ("_double", "_index")

    def __init__(self, double: Double[Any], index: int) -> None:
        self._double = double
        self._index = index

    def returns(self, value: Any) -> ReturnsHandle:
        """Return ``value`` when the rule matches.

        A None value stands for the declared return type's default unless
        that type admits None.

        Raises:
            ReturnTypeMismatchError: ``value`` does not fit the return type.
            DefaultValueError: ``value`` is None and the return type has no
                default.
        """
        rule = self._double._matching_rule(self._index)
        declared = _declared_return(rule.sample)
        if value is None:
            default_value(declared)
        elif not is_assignable(value, declared):
            raise ReturnTypeMismatchError(rule.sample.operation.name, value, declared)
        self._double._complete(self._index, Returns(value, declared))
        return ReturnsHandle(self._double, self._index)

    def throws(
        self, exception: type[BaseException] | Callable[[], BaseException]
    ) -> None:
        """Raise an exception when the rule matches.

        ``exception`` is an exception class (instantiated with no arguments
        on every match) or a zero-argument factory (called on every match).
        """
        if isinstance(exception, BaseException):
            msg = (
                f"throws() needs an exception type or a factory, got the instance "
                f"{exception!r}; pass lambda: exc to raise it"
            )
            raise RegistrationError(msg)
        if isinstance(exception, type):
            if not issubclass(exception, BaseException):
                msg = f"throws() needs an exception type, got {exception.__qualname__}"
                raise RegistrationError(msg)
        elif not callable(exception):
            msg = f"throws() needs an exception type or a factory, got {type(exception).__name__}"
            raise RegistrationError(msg)
        self._double._complete(self._index, Throws(exception))


class ReturnsHandle:
    """Subscribe a side-effect callback to a Returns completion."""

    __slots__ = ("_double", "_index")

    def __init__(self, double: Double[Any], index: int) -> None:
        self._double = double
        self._index = index

    def subscribe(self, callback: Callable[[], object]) -> None:
        """Run ``callback`` on every match, before the value is returned."""
        if not callable(callback):
            msg = f"callback must be callable, got {type(callback).__name__}"
            raise RegistrationError(msg)
        rule = self._double._matching_rule(self._index)
        completion = rule.completion
        if not isinstance(completion, Returns):  # pragma: no cover
            msg = "subscribe() needs a returns() completion"
            raise RegistrationError(msg)
        if completion.callback is not None:
            msg = f"a callback is already subscribed to this {rule.sample.operation.name} rule"
            raise RegistrationError(msg)
        self._double._replace(
            self._index,
            dataclasses.replace(rule, completion=dataclasses.replace(completion, callback=callback)),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Double
# ═══════════════════════════════════════════════════════════════════════════════


class Double[T]:
    """Ordered rule collection for one contract plus its memoized proxy.

    Not thread-safe: register every rule, then use ``instance``.
    """

    def __init__(
        self,
        contract: type[T],
        *,
        oracle: ReflectionOracle = list_operations,
        factory: ProxyFactory = synthesize_implementation,
    ) -> None:
        self._contract = contract
        self._name = contract_name(contract)
        self._operations = oracle(contract)
        self._factory = factory
        self._rules: list[MethodRule] = []
        self._instance: T | None = None

    def __repr__(self) -> str:
        return f"Double({self._name}, rules={len(self._rules)})"

    @property
    def contract(self) -> type[T]:
        return self._contract

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Every operation the proxy implements, overload variants included."""
        return self._operations

    @property
    def rule_count(self) -> int:
        return len(self._rules)

    @property
    def instance(self) -> T:
        """The synthesized implementation, built on first access."""
        if self._instance is None:
            self._instance = synthesize(
                self._contract, self._operations, tuple(self._rules), self._factory
            )
        return self._instance

    def rule(self, selector: Any, *args: Any, **kwargs: Any) -> RuleHandle:
        """Register a matching rule from a sample call.

        ``selector`` is the contract's function (``Contract.method``) or the
        operation name; the remaining arguments are the expected values.

        Raises:
            UnsupportedCallShapeError: bad selector or argument shape.
            UnknownOperationError: the call resolves to no operation.
        """
        self._check_open()
        sample = capture_sample_call(self._name, self._operations, selector, args, kwargs)
        predicate = predicate_for(sample.values)
        index = self._append(MatchingRule(sample, predicate, None))
        logger.debug(
            "rule #%d: %s.%s%s comparing %d argument(s)",
            index,
            self._name,
            sample.operation.name,
            describe(sample.instantiation) if sample.instantiation else "",
            predicate_width(predicate),
        )
        return RuleHandle(self, index)

    def rule_with_implementation(
        self,
        selector: Any,
        implementation: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Route every call of an operation to ``implementation``.

        Sample arguments only identify the operation (an overload variant or a
        generic instantiation); their values are not compared. The delegate
        receives one positional argument per parameter.

        Raises:
            ImplementationSignatureError: the delegate's arity does not fit.
        """
        self._check_open()
        if not callable(implementation):
            msg = f"implementation must be callable, got {type(implementation).__name__}"
            raise RegistrationError(msg)
        if args or kwargs:
            sample = capture_sample_call(self._name, self._operations, selector, args, kwargs)
        else:
            sample = capture_operation(self._name, self._operations, selector)
        _check_arity(sample.operation, implementation)
        index = self._append(ImplementationRule(sample, implementation))
        logger.debug("rule #%d: %s.%s -> implementation", index, self._name, sample.operation.name)

    def load(self, config: DoubleConfig) -> Double[T]:
        """Register the rules of a declarative config, in order.

        Raises:
            ConfigParseError: an exception name cannot be resolved or a
                pattern is not valid.
        """
        for rule_config in config.rules:
            self._load_rule(rule_config)
        return self

    # ── Private ──────────────────────────────────────────────────────────────

    def _check_open(self) -> None:
        if self._instance is not None:
            msg = f"{self._name} double is already in use; register rules before accessing instance"
            raise RegistrationError(msg)

    def _append(self, rule: MethodRule) -> int:
        self._rules.append(rule)
        return len(self._rules) - 1

    def _replace(self, index: int, rule: MethodRule) -> None:
        self._check_open()
        self._rules[index] = rule

    def _matching_rule(self, index: int) -> MatchingRule:
        rule = self._rules[index]
        if not isinstance(rule, MatchingRule):
            name = rule.sample.operation.name
            msg = f"rule #{index} is an implementation rule for {name}; it takes no completion"
            raise RegistrationError(msg)
        return rule

    def _complete(self, index: int, completion: Completion) -> None:
        rule = self._matching_rule(index)
        if rule.completion is not None:
            msg = f"this {rule.sample.operation.name} rule already has a completion"
            raise RegistrationError(msg)
        self._replace(index, dataclasses.replace(rule, completion=completion))

    def _load_rule(self, config: RuleConfig) -> None:
        args = [_load_arg(a) for a in config.args]
        kwargs = {k: _load_arg(v) for k, v in config.kwargs.items()}
        match config.completion:
            case ReturnsConfig(value=value):
                self.rule(config.operation, *args, **kwargs).returns(value)
            case RaisesConfig(exception=name):
                exception = _load_exception(name)
                self.rule(config.operation, *args, **kwargs).throws(exception)
            case _:  # pragma: no cover
                msg = f"unknown completion config type: {type(config.completion).__name__}"
                raise ConfigParseError(msg)


def double_of[T](contract: type[T]) -> Double[T]:
    """Start a rule builder for ``contract``.

    Raises:
        ContractError: ``contract`` is not an abstract class or protocol.
    """
    return Double(contract)


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _declared_return(sample: SampleCall) -> Any:
    operation = sample.operation
    if not operation.is_generic:
        return operation.return_type
    return instantiate(operation.return_type, operation, sample.instantiation)


def _check_arity(operation: Operation, implementation: Callable[..., Any]) -> None:
    try:
        signature = inspect.signature(implementation)
    except (TypeError, ValueError):
        # Some builtins expose no signature; they are checked when called.
        return
    try:
        signature.bind(*range(operation.arity))
    except TypeError as e:
        raise ImplementationSignatureError(operation.name, operation.arity, str(e)) from e


def _load_arg(config: ArgConfig) -> Any:
    match config:
        case LiteralArg(value=value):
            return value
        case NullableArg(value=value):
            return Nullable(value)
        case MatchArg(variant="Any"):
            return AnyValue()
        case MatchArg(variant=variant, value=value, ignore_case=ignore_case):
            return _compile_match(variant, value, ignore_case)
        case _:  # pragma: no cover
            msg = f"unknown argument config type: {type(config).__name__}"
            raise ConfigParseError(msg)


def _compile_match(variant: str, value: str, ignore_case: bool) -> Any:
    match variant:
        case "Exact":
            return Exact(value, ignore_case=ignore_case)
        case "Prefix":
            return Prefix(value, ignore_case=ignore_case)
        case "Suffix":
            return Suffix(value, ignore_case=ignore_case)
        case "Contains":
            return Contains(value, ignore_case=ignore_case)
        case "Regex":
            try:
                return Regex(value)
            except StubError as e:
                raise ConfigParseError(str(e)) from e
        case _:
            msg = f"unknown match variant: {variant!r}"
            raise ConfigParseError(msg)


def _load_exception(name: str) -> type[BaseException]:
    """Resolve a builtin exception name or a dotted ``module.Class`` path."""
    if "." in name:
        module_name, _, attr = name.rpartition(".")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            msg = f"cannot import module {module_name!r} for exception {name!r}"
            raise ConfigParseError(msg) from e
        resolved = getattr(module, attr, None)
    else:
        resolved = getattr(builtins, name, None)

    if not (isinstance(resolved, type) and issubclass(resolved, BaseException)):
        msg = f"{name!r} does not name an exception class"
        raise ConfigParseError(msg)
    return resolved
