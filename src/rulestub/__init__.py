"""rulestub — rule-based test doubles for abstract classes and protocols.

All public types are exported from this module for flat imports:

    from rulestub import double_of, Nullable, AnyValue, NotStubbedError
"""

__version__ = "0.1.0"

# Argument matchers
from rulestub._arg_matchers import (
    AnyValue,
    Contains,
    Exact,
    InstanceOf,
    Prefix,
    Regex,
    Suffix,
)

# Sample calls
from rulestub._capture import (
    CapturedArgument,
    Nullable,
    RegistrationError,
    SampleCall,
    Snapshot,
    UnknownOperationError,
    UnsupportedCallShapeError,
    snapshot_attr,
)

# Config types, see rulestub._config
from rulestub._config import (
    MAX_PATTERN_LENGTH,
    MAX_REGEX_PATTERN_LENGTH,
    ArgConfig,
    ConfigParseError,
    DoubleConfig,
    LiteralArg,
    MatchArg,
    NullableArg,
    RaisesConfig,
    ReturnsConfig,
    RuleConfig,
    load_double_config,
    parse_double_config,
)

# Dispatch
from rulestub._dispatch import (
    Completion,
    ImplementationRule,
    MatchingRule,
    NotStubbedError,
    Returns,
    Throws,
)

# Rule builder
from rulestub._double import (
    Double,
    ImplementationSignatureError,
    ReturnsHandle,
    ReturnTypeMismatchError,
    RuleHandle,
    double_of,
)
from rulestub._generics import Instantiation, infer_instantiation
from rulestub._proxy import synthesize, synthesize_implementation

# Reflection
from rulestub._reflect import ContractError, Operation, list_operations
from rulestub._types import (
    ArgumentMatcher,
    CallArgs,
    DispatchFunction,
    DispatchTable,
    ProxyFactory,
    ReflectionOracle,
    StubError,
)
from rulestub._values import DefaultValueError, default_value

__all__ = [
    "MAX_PATTERN_LENGTH",
    "MAX_REGEX_PATTERN_LENGTH",
    "AnyValue",
    "ArgConfig",
    "ArgumentMatcher",
    "CallArgs",
    "CapturedArgument",
    "Completion",
    "ConfigParseError",
    "Contains",
    "ContractError",
    "DefaultValueError",
    "DispatchFunction",
    "DispatchTable",
    "Double",
    "DoubleConfig",
    "Exact",
    "ImplementationRule",
    "ImplementationSignatureError",
    "InstanceOf",
    "Instantiation",
    "LiteralArg",
    "MatchArg",
    "MatchingRule",
    "NotStubbedError",
    "Nullable",
    "NullableArg",
    "Operation",
    "Prefix",
    "ProxyFactory",
    "RaisesConfig",
    "ReflectionOracle",
    "Regex",
    "RegistrationError",
    "Returns",
    "ReturnsConfig",
    "ReturnsHandle",
    "ReturnTypeMismatchError",
    "RuleConfig",
    "RuleHandle",
    "SampleCall",
    "Snapshot",
    "StubError",
    "Suffix",
    "Throws",
    "UnknownOperationError",
    "UnsupportedCallShapeError",
    "__version__",
    "default_value",
    "double_of",
    "infer_instantiation",
    "list_operations",
    "snapshot_attr",
    "synthesize",
    "synthesize_implementation",
]
