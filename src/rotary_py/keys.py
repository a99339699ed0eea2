from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .codec import AttributeValue, decode_value, encode_value
from .errors import ValidationError, ValueKindError
from .schema import KeySchema


@dataclass(frozen=True)
class Key:
    """A primary key, either positional (hash/range) or named (attribute map).

    Equality compares the encoded components, so ``1`` and ``Decimal("1.0")``
    build equal keys.
    """

    hash: AttributeValue | None = None
    range: AttributeValue | None = None
    attributes: Mapping[str, AttributeValue] | None = None

    def __post_init__(self) -> None:
        if self.attributes is not None:
            if self.hash is not None or self.range is not None:
                raise ValidationError("named keys cannot also carry hash/range components")
            if not self.attributes:
                raise ValidationError("named key requires at least one attribute")
        elif self.hash is None:
            raise ValidationError("hash key component is required")

    @property
    def is_named(self) -> bool:
        return self.attributes is not None

    def to_dynamodb(self, key_schema: KeySchema | None = None) -> dict[str, AttributeValue]:
        if self.attributes is not None:
            return dict(self.attributes)

        if key_schema is None:
            raise ValidationError("key schema is required to name a positional key")
        if self.hash is None:
            raise ValidationError("hash key component is required")

        out = {key_schema.hash_key.name: self.hash}
        if key_schema.range_key is None:
            if self.range is not None:
                raise ValidationError("table has no range key but a range value was given")
            return out

        if self.range is None:
            raise ValidationError(f"range key {key_schema.range_key.name} is required")
        out[key_schema.range_key.name] = self.range
        return out


def build_key(hash_value: Any, range_value: Any = None) -> Key:
    if isinstance(hash_value, Mapping):
        if range_value is not None:
            raise ValidationError("named keys do not take a separate range value")
        attrs: dict[str, AttributeValue] = {}
        for name, value in hash_value.items():
            try:
                attrs[str(name)] = encode_value(value)
            except ValueKindError as err:
                raise ValueKindError(f"{name}: {err}") from err
        return Key(attributes=attrs)

    if hash_value is None:
        raise ValidationError("hash key value is required")

    return Key(
        hash=encode_value(hash_value),
        range=encode_value(range_value) if range_value is not None else None,
    )


def coerce_key(value: Any) -> Key:
    """Accept a Key, a scalar hash, ``[hash]``, ``[hash, range]`` or an attribute map."""
    if isinstance(value, Key):
        return value
    if isinstance(value, (list, tuple)):
        if len(value) == 1:
            return build_key(value[0])
        if len(value) == 2:
            return build_key(value[0], value[1])
        raise ValidationError(f"key sequence must have one or two elements (got {len(value)})")
    return build_key(value)


def decode_key(key: Key) -> Any:
    if key.attributes is not None:
        return {name: decode_value(av) for name, av in key.attributes.items()}
    if key.range is None:
        return decode_value(key.hash)
    return (decode_value(key.hash), decode_value(key.range))
