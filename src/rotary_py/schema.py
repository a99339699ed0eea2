from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .errors import ValidationError

type KeyType = Literal["S", "N", "B"]

_KEY_TYPES = frozenset({"S", "N", "B"})


@dataclass(frozen=True)
class KeyAttribute:
    name: str
    type: KeyType

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("key attribute name is required")
        if self.type not in _KEY_TYPES:
            raise ValidationError(f"key attribute type must be S/N/B: {self.name} (got {self.type!r})")

    @staticmethod
    def string(name: str) -> KeyAttribute:
        return KeyAttribute(name=name, type="S")

    @staticmethod
    def number(name: str) -> KeyAttribute:
        return KeyAttribute(name=name, type="N")

    @staticmethod
    def binary(name: str) -> KeyAttribute:
        return KeyAttribute(name=name, type="B")


@dataclass(frozen=True)
class KeySchema:
    hash_key: KeyAttribute
    range_key: KeyAttribute | None = None

    def to_dynamodb(self) -> list[dict[str, str]]:
        out = [{"AttributeName": self.hash_key.name, "KeyType": "HASH"}]
        if self.range_key is not None:
            out.append({"AttributeName": self.range_key.name, "KeyType": "RANGE"})
        return out


@dataclass(frozen=True)
class Projection:
    type: str
    attributes: tuple[str, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(type="ALL")

    @staticmethod
    def keys_only() -> Projection:
        return Projection(type="KEYS_ONLY")

    @staticmethod
    def include(*attributes: str) -> Projection:
        return Projection(type="INCLUDE", attributes=tuple(attributes))

    def to_dynamodb(self) -> dict[str, object]:
        out: dict[str, object] = {"ProjectionType": self.type}
        if self.type == "INCLUDE" and self.attributes:
            out["NonKeyAttributes"] = list(self.attributes)
        return out


@dataclass(frozen=True)
class Throughput:
    read: int
    write: int

    def __post_init__(self) -> None:
        if self.read <= 0 or self.write <= 0:
            raise ValidationError("throughput read/write must be > 0")

    def to_dynamodb(self) -> dict[str, int]:
        return {"ReadCapacityUnits": int(self.read), "WriteCapacityUnits": int(self.write)}


@dataclass(frozen=True)
class IndexSchema:
    """A secondary index.

    Without ``hash_key`` the index is local and shares the table hash key;
    with one it is global and carries its own ``throughput``.
    """

    name: str
    range_key: KeyAttribute | None
    projection: Projection = field(default_factory=Projection.all)
    hash_key: KeyAttribute | None = None
    throughput: Throughput | None = None

    @property
    def is_global(self) -> bool:
        return self.hash_key is not None

    def key_schema(self, table_hash_key: KeyAttribute) -> KeySchema:
        return KeySchema(hash_key=self.hash_key or table_hash_key, range_key=self.range_key)


@dataclass(frozen=True)
class TableSchema:
    """Table layout. A ``throughput`` of None means on-demand billing."""

    name: str
    key_schema: KeySchema
    throughput: Throughput | None = None
    indexes: tuple[IndexSchema, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("table name is required")

        seen: set[str] = set()
        for idx in self.indexes:
            if idx.name in seen:
                raise ValidationError(f"duplicate index name: {idx.name}")
            seen.add(idx.name)
            if not idx.is_global and idx.range_key is None:
                raise ValidationError(f"local index requires a range key: {idx.name}")
            if not idx.is_global and idx.throughput is not None:
                raise ValidationError(f"local index cannot set throughput: {idx.name}")

        self.attribute_definitions()

    @property
    def hash_key(self) -> KeyAttribute:
        return self.key_schema.hash_key

    @property
    def range_key(self) -> KeyAttribute | None:
        return self.key_schema.range_key

    def index(self, name: str) -> IndexSchema:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        raise ValidationError(f"unknown index: {name}")

    def index_key_schema(self, name: str | None) -> KeySchema:
        if name is None:
            return self.key_schema
        return self.index(name).key_schema(self.hash_key)

    def attribute_definitions(self) -> list[KeyAttribute]:
        """Every attribute used by the table key or any index key, sorted by name."""
        attrs: dict[str, KeyAttribute] = {}
        candidates = [self.hash_key, self.range_key]
        for idx in self.indexes:
            candidates.extend((idx.hash_key, idx.range_key))

        for attr in candidates:
            if attr is None:
                continue
            existing = attrs.get(attr.name)
            if existing is not None and existing.type != attr.type:
                raise ValidationError(
                    f"attribute {attr.name} declared as both {existing.type} and {attr.type}"
                )
            attrs[attr.name] = attr

        return [attrs[name] for name in sorted(attrs)]
