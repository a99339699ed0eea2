from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, cast

from .codec import decode_value
from .cursor import PageCursor
from .errors import ValidationError
from .schema import IndexSchema, KeyAttribute, KeySchema, KeyType, Projection, TableSchema, Throughput

type Item = dict[str, Any]
type TableStatus = Literal[
    "creating",
    "updating",
    "deleting",
    "active",
    "archiving",
    "archived",
    "inaccessible_encryption_credentials",
]

_STATUSES = frozenset(
    {
        "creating",
        "updating",
        "deleting",
        "active",
        "archiving",
        "archived",
        "inaccessible_encryption_credentials",
    }
)


@dataclass(frozen=True)
class ThroughputDescription:
    read: int
    write: int
    last_increase: datetime | None = None
    last_decrease: datetime | None = None
    decreases_today: int | None = None


@dataclass(frozen=True)
class TableDescription:
    schema: TableSchema
    status: TableStatus
    created_at: datetime | None = None
    item_count: int | None = None
    size_bytes: int | None = None
    throughput: ThroughputDescription | None = None


@dataclass(frozen=True)
class QueryResult:
    items: list[Item]
    count: int
    resume_cursor: PageCursor | None = None
    consumed_capacity: Any = None


@dataclass(frozen=True)
class ScanResult:
    items: list[Item]
    count: int
    scanned_count: int
    resume_cursor: PageCursor | None = None
    consumed_capacity: Any = None


@dataclass(frozen=True)
class BatchGetResult:
    responses: dict[str, list[Item]]
    unprocessed_keys: dict[str, Any] = field(default_factory=dict)
    consumed_capacity: Any = None


@dataclass(frozen=True)
class BatchWriteResult:
    unprocessed_items: dict[str, Any] = field(default_factory=dict)
    consumed_capacity: Any = None


@dataclass(frozen=True)
class WriteResult:
    attributes: Item | None = None
    consumed_capacity: Any = None


def decode_item(raw: Mapping[str, Any] | None) -> Item | None:
    if not raw:
        return None
    return {name: decode_value(av) for name, av in raw.items()}


def _decode_items(raw: Iterable[Mapping[str, Any]] | None) -> list[Item]:
    out: list[Item] = []
    for raw_item in raw or ():
        item = decode_item(raw_item)
        if item is not None:
            out.append(item)
    return out


def _resume_cursor(raw: Mapping[str, Any]) -> PageCursor | None:
    last = raw.get("LastEvaluatedKey")
    return PageCursor(last_key=last) if last else None


def decode_key_schema(
    raw_key_schema: Sequence[Mapping[str, Any]],
    raw_attribute_definitions: Sequence[Mapping[str, Any]],
) -> KeySchema:
    types = {str(d["AttributeName"]): str(d["AttributeType"]) for d in raw_attribute_definitions}

    def attr(name: str) -> KeyAttribute:
        if name not in types:
            raise ValidationError(f"key attribute {name} has no attribute definition")
        return KeyAttribute(name=name, type=cast(KeyType, types[name]))

    hash_key: KeyAttribute | None = None
    range_key: KeyAttribute | None = None
    for element in raw_key_schema:
        role = str(element.get("KeyType", ""))
        if role == "HASH":
            hash_key = attr(str(element["AttributeName"]))
        elif role == "RANGE":
            range_key = attr(str(element["AttributeName"]))
        else:
            raise ValidationError(f"unsupported key type: {role!r}")

    if hash_key is None:
        raise ValidationError("key schema has no hash key")
    return KeySchema(hash_key=hash_key, range_key=range_key)


def _decode_projection(raw: Mapping[str, Any] | None) -> Projection:
    raw = raw or {}
    kind = str(raw.get("ProjectionType", "ALL"))
    return Projection(type=kind, attributes=tuple(raw.get("NonKeyAttributes") or ()))


def _decode_throughput(raw: Mapping[str, Any] | None) -> ThroughputDescription | None:
    if not raw:
        return None
    return ThroughputDescription(
        read=int(raw.get("ReadCapacityUnits", 0)),
        write=int(raw.get("WriteCapacityUnits", 0)),
        last_increase=raw.get("LastIncreaseDateTime"),
        last_decrease=raw.get("LastDecreaseDateTime"),
        decreases_today=raw.get("NumberOfDecreasesToday"),
    )


def _provisioned(desc: ThroughputDescription | None) -> Throughput | None:
    # On-demand tables report 0/0.
    if desc is None or desc.read <= 0 or desc.write <= 0:
        return None
    return Throughput(read=desc.read, write=desc.write)


def decode_table_status(raw_status: str) -> TableStatus:
    status = str(raw_status).lower()
    if status not in _STATUSES:
        raise ValidationError(f"unsupported table status: {raw_status!r}")
    return cast(TableStatus, status)


def _table_block(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    return raw.get("Table") or raw.get("TableDescription") or raw


def decode_table_schema(raw: Mapping[str, Any]) -> TableSchema:
    """Decode only the schema part of a table description.

    The status is not looked at, so a table in a state this library does not
    know can still have its keys named.
    """
    table = _table_block(raw)
    attr_defs = table.get("AttributeDefinitions") or []
    key_schema = decode_key_schema(table.get("KeySchema") or [], attr_defs)

    indexes: list[IndexSchema] = []
    for raw_idx in table.get("LocalSecondaryIndexes") or []:
        idx_keys = decode_key_schema(raw_idx.get("KeySchema") or [], attr_defs)
        indexes.append(
            IndexSchema(
                name=str(raw_idx["IndexName"]),
                range_key=idx_keys.range_key,
                projection=_decode_projection(raw_idx.get("Projection")),
            )
        )
    for raw_idx in table.get("GlobalSecondaryIndexes") or []:
        idx_keys = decode_key_schema(raw_idx.get("KeySchema") or [], attr_defs)
        indexes.append(
            IndexSchema(
                name=str(raw_idx["IndexName"]),
                range_key=idx_keys.range_key,
                projection=_decode_projection(raw_idx.get("Projection")),
                hash_key=idx_keys.hash_key,
                throughput=_provisioned(_decode_throughput(raw_idx.get("ProvisionedThroughput"))),
            )
        )

    billing = (table.get("BillingModeSummary") or {}).get("BillingMode")
    throughput = None
    if billing != "PAY_PER_REQUEST":
        throughput = _provisioned(_decode_throughput(table.get("ProvisionedThroughput")))
    return TableSchema(
        name=str(table["TableName"]),
        key_schema=key_schema,
        throughput=throughput,
        indexes=tuple(indexes),
    )


def decode_table_description(raw: Mapping[str, Any]) -> TableDescription:
    """Decode a DescribeTable/CreateTable/DeleteTable response or its table block."""
    table = _table_block(raw)
    throughput = _decode_throughput(table.get("ProvisionedThroughput"))
    return TableDescription(
        schema=decode_table_schema(table),
        status=decode_table_status(table.get("TableStatus", "")),
        created_at=table.get("CreationDateTime"),
        item_count=table.get("ItemCount"),
        size_bytes=table.get("TableSizeBytes"),
        throughput=throughput,
    )


def decode_query_result(raw: Mapping[str, Any]) -> QueryResult:
    items = _decode_items(raw.get("Items"))
    return QueryResult(
        items=items,
        count=int(raw.get("Count", len(items))),
        resume_cursor=_resume_cursor(raw),
        consumed_capacity=raw.get("ConsumedCapacity"),
    )


def decode_scan_result(raw: Mapping[str, Any]) -> ScanResult:
    items = _decode_items(raw.get("Items"))
    count = int(raw.get("Count", len(items)))
    return ScanResult(
        items=items,
        count=count,
        scanned_count=int(raw.get("ScannedCount", count)),
        resume_cursor=_resume_cursor(raw),
        consumed_capacity=raw.get("ConsumedCapacity"),
    )


def decode_batch_get_result(raw: Mapping[str, Any], *, tables: Iterable[str] = ()) -> BatchGetResult:
    responses: dict[str, list[Item]] = {table: [] for table in tables}
    for table, raw_items in (raw.get("Responses") or {}).items():
        responses[table] = _decode_items(raw_items)

    return BatchGetResult(
        responses=responses,
        unprocessed_keys={t: v for t, v in (raw.get("UnprocessedKeys") or {}).items() if v},
        consumed_capacity=raw.get("ConsumedCapacity"),
    )


def decode_batch_write_result(raw: Mapping[str, Any]) -> BatchWriteResult:
    return BatchWriteResult(
        unprocessed_items={t: v for t, v in (raw.get("UnprocessedItems") or {}).items() if v},
        consumed_capacity=raw.get("ConsumedCapacity"),
    )


def decode_write_result(raw: Mapping[str, Any]) -> WriteResult:
    return WriteResult(
        attributes=decode_item(raw.get("Attributes")),
        consumed_capacity=raw.get("ConsumedCapacity"),
    )
