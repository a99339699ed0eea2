from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .codec import AttributeValue, encode_value
from .errors import ValidationError

_SYMBOLS = {
    "<": "LT",
    "<=": "LE",
    ">": "GT",
    ">=": "GE",
    "=": "EQ",
}

# Operand count per comparison operator; None means "one or more".
_ARITY: dict[str, int | None] = {
    "EQ": 1,
    "NE": 1,
    "LT": 1,
    "LE": 1,
    "GT": 1,
    "GE": 1,
    "BEGINS_WITH": 1,
    "CONTAINS": 1,
    "NOT_CONTAINS": 1,
    "BETWEEN": 2,
    "IN": None,
    "NULL": 0,
    "NOT_NULL": 0,
}

KEY_CONDITION_OPERATORS = frozenset({"EQ", "LT", "LE", "GT", "GE", "BETWEEN", "BEGINS_WITH"})


def _unqualified(token: str) -> str:
    tail = token.strip()
    for sep in ("/", ":", "."):
        _, found, rest = tail.rpartition(sep)
        if found and rest:
            tail = rest
    return tail


def normalize_operator(token: str | Callable[..., Any]) -> str:
    """Map a comparison token to the store's operator code.

    Namespace prefixes are ignored (``"ns/<"`` and ``"<"`` both give ``LT``) and
    ``operator`` module functions are accepted by name. Anything unrecognized
    comes back uppercased.
    """
    if callable(token) and not isinstance(token, str):
        token = str(getattr(token, "__name__", token))
    tail = _unqualified(str(token))
    return _SYMBOLS.get(tail, tail.upper())


@dataclass(frozen=True)
class Condition:
    operator: str
    values: tuple[AttributeValue, ...] = ()

    def __post_init__(self) -> None:
        if self.operator not in _ARITY:
            raise ValidationError(f"unsupported comparison operator: {self.operator}")
        arity = _ARITY[self.operator]
        if arity is None:
            if not self.values:
                raise ValidationError(f"{self.operator} requires at least one value")
        elif len(self.values) != arity:
            raise ValidationError(f"{self.operator} requires {arity} value(s) (got {len(self.values)})")

    def to_dynamodb(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ComparisonOperator": self.operator}
        if self.values:
            out["AttributeValueList"] = list(self.values)
        return out

    @staticmethod
    def eq(value: Any) -> Condition:
        return build_condition("EQ", value)

    @staticmethod
    def ne(value: Any) -> Condition:
        return build_condition("NE", value)

    @staticmethod
    def lt(value: Any) -> Condition:
        return build_condition("LT", value)

    @staticmethod
    def le(value: Any) -> Condition:
        return build_condition("LE", value)

    @staticmethod
    def gt(value: Any) -> Condition:
        return build_condition("GT", value)

    @staticmethod
    def ge(value: Any) -> Condition:
        return build_condition("GE", value)

    @staticmethod
    def between(low: Any, high: Any) -> Condition:
        return build_condition("BETWEEN", low, high)

    @staticmethod
    def begins_with(prefix: Any) -> Condition:
        return build_condition("BEGINS_WITH", prefix)

    @staticmethod
    def contains(value: Any) -> Condition:
        return build_condition("CONTAINS", value)

    @staticmethod
    def not_contains(value: Any) -> Condition:
        return build_condition("NOT_CONTAINS", value)

    @staticmethod
    def in_(values: Sequence[Any]) -> Condition:
        return build_condition("IN", *values)

    @staticmethod
    def exists() -> Condition:
        return build_condition("NOT_NULL")

    @staticmethod
    def not_exists() -> Condition:
        return build_condition("NULL")


def build_condition(operator: str | Callable[..., Any], *operands: Any) -> Condition:
    op = normalize_operator(operator)
    values = tuple(encode_value(v) for v in operands if v is not None)
    return Condition(operator=op, values=values)


def as_condition(spec: Any) -> Condition:
    """Accept a Condition or an ``(operator, *operands)`` sequence."""
    if isinstance(spec, Condition):
        return spec
    if isinstance(spec, (list, tuple)) and spec:
        return build_condition(spec[0], *spec[1:])
    raise ValidationError(f"invalid condition: {spec!r}")


def build_filter(filters: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    return {name: as_condition(spec).to_dynamodb() for name, spec in filters.items()}


class Expectation:
    def to_dynamodb(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class MustExist(Expectation):
    def to_dynamodb(self) -> dict[str, Any]:
        return {"ComparisonOperator": "NOT_NULL"}


@dataclass(frozen=True)
class MustNotExist(Expectation):
    def to_dynamodb(self) -> dict[str, Any]:
        return {"ComparisonOperator": "NULL"}


@dataclass(frozen=True)
class MustEqual(Expectation):
    value: Any

    def to_dynamodb(self) -> dict[str, Any]:
        if self.value is None:
            raise ValidationError("MustEqual requires a value (use MustNotExist for absence)")
        return {"ComparisonOperator": "EQ", "AttributeValueList": [encode_value(self.value)]}


def build_expected(expected: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Compile per-attribute expectations; a bare value means ``MustEqual(value)``."""
    out: dict[str, dict[str, Any]] = {}
    for name, spec in expected.items():
        expectation = spec if isinstance(spec, Expectation) else MustEqual(spec)
        out[name] = expectation.to_dynamodb()
    return out
