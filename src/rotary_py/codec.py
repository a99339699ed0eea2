from __future__ import annotations

from collections.abc import Mapping
from decimal import Context, Decimal, DecimalException
from typing import Any, Literal

from boto3.dynamodb.types import DYNAMODB_CONTEXT, Binary, TypeDeserializer

from .errors import ValueKindError

type AttributeValue = dict[str, Any]
type ScalarKind = Literal["S", "N", "B"]

_ONE = Decimal(1)

# Tags written by other clients. Readable, never produced here.
_FOREIGN_TAGS = frozenset({"BOOL", "NULL", "L", "M"})

_deserializer = TypeDeserializer()


def _reject_float(value: Any) -> None:
    if isinstance(value, float):
        raise ValueKindError(f"float values are not supported, use Decimal (got {value!r})")


def scalar_kind(value: Any) -> ScalarKind | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return "S"
    if isinstance(value, (int, Decimal)):
        return "N"
    if isinstance(value, (bytes, bytearray, Binary)):
        return "B"
    return None


def canonical_number(value: int | Decimal) -> str:
    """Return the canonical wire text for a number.

    Trailing zeros are dropped (``1``, ``1.0`` and ``1.00`` all give ``"1"``),
    integral values are written without an exponent while they fit the
    store's 38 significant digits. Floats are refused: they would come back
    as a ``Decimal`` and compare unequal to the value that was written.
    """
    _reject_float(value)
    if scalar_kind(value) != "N":
        raise ValueKindError(f"not a number: {type(value).__name__}")

    number = Decimal(value)
    if not number.is_finite():
        raise ValueKindError(f"number must be finite: {value!r}")
    if number.is_zero():
        return "0"

    number = number.normalize(Context(prec=len(number.as_tuple().digits)))
    try:
        number = DYNAMODB_CONTEXT.plus(number)
    except DecimalException as err:
        raise ValueKindError(f"number is outside the store's precision or range: {value!r}") from err

    _, digits, exponent = number.as_tuple()
    if isinstance(exponent, int) and exponent > 0 and len(digits) + exponent <= DYNAMODB_CONTEXT.prec:
        number = number.quantize(_ONE, context=DYNAMODB_CONTEXT)
    return str(number)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, Binary):
        return bytes(value.value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise ValueKindError(f"binary value must be bytes (got {type(value).__name__})")


def _encode_set(values: set[Any] | frozenset[Any]) -> AttributeValue:
    if not values:
        raise ValueKindError("cannot encode an empty set")

    for v in values:
        _reject_float(v)
    kinds = {scalar_kind(v) for v in values}
    if None in kinds:
        bad = sorted({type(v).__name__ for v in values if scalar_kind(v) is None})
        raise ValueKindError(f"set contains unsupported element types: {bad}")
    if len(kinds) > 1:
        raise ValueKindError(f"set mixes element kinds: {sorted(k for k in kinds if k)}")

    (kind,) = kinds
    if kind == "S":
        return {"SS": sorted(values)}
    if kind == "N":
        return {"NS": sorted({canonical_number(v) for v in values}, key=Decimal)}
    return {"BS": sorted({_to_bytes(v) for v in values})}


def encode_value(value: Any) -> AttributeValue:
    if isinstance(value, (set, frozenset)):
        return _encode_set(value)
    _reject_float(value)

    kind = scalar_kind(value)
    if kind == "S":
        return {"S": value}
    if kind == "N":
        return {"N": canonical_number(value)}
    if kind == "B":
        return {"B": _to_bytes(value)}

    raise ValueKindError(f"unsupported value type: {type(value).__name__}")


def decode_value(av: Mapping[str, Any] | None) -> Any:
    if not av:
        return None
    if len(av) != 1:
        raise ValueKindError(f"attribute value must carry exactly one type tag (got {sorted(av)})")

    ((tag, raw),) = av.items()

    if tag == "S":
        if not isinstance(raw, str):
            raise ValueKindError("S value must be a string")
        return raw
    if tag == "N":
        try:
            return Decimal(raw)
        except (DecimalException, TypeError) as err:
            raise ValueKindError(f"N value is not a number: {raw!r}") from err
    if tag == "B":
        return _to_bytes(raw)
    if tag == "SS":
        return set(raw)
    if tag == "NS":
        try:
            return {Decimal(n) for n in raw}
        except (DecimalException, TypeError) as err:
            raise ValueKindError(f"NS value is not a set of numbers: {raw!r}") from err
    if tag == "BS":
        return {_to_bytes(b) for b in raw}
    if tag in _FOREIGN_TAGS:
        return _deserializer.deserialize(dict(av))

    raise ValueKindError(f"unsupported attribute value type: {tag}")


def encode_item(item: Mapping[str, Any]) -> dict[str, AttributeValue]:
    if not isinstance(item, Mapping):
        raise ValueKindError(f"item must be a mapping (got {type(item).__name__})")

    out: dict[str, AttributeValue] = {}
    for name, value in item.items():
        if not isinstance(name, str):
            raise ValueKindError(f"attribute names must be strings (got {name!r})")
        try:
            out[name] = encode_value(value)
        except ValueKindError as err:
            raise ValueKindError(f"{name}: {err}") from err
    return out
