from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .codec import encode_item, encode_value, scalar_kind
from .conditions import KEY_CONDITION_OPERATORS, Condition, as_condition, build_expected, build_filter
from .cursor import PageCursor
from .errors import ValidationError
from .keys import coerce_key
from .schema import KeySchema, TableSchema, Throughput

type Order = Literal["asc", "desc"]
type UpdateAction = Literal["ADD", "PUT", "DELETE"]

_CONSUMED_CAPACITY = frozenset({"TOTAL", "INDEXES", "NONE"})
_PUT_RETURN_VALUES = frozenset({"NONE", "ALL_OLD"})
_DELETE_RETURN_VALUES = _PUT_RETURN_VALUES
_UPDATE_RETURN_VALUES = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})


@dataclass(frozen=True)
class Update:
    action: str
    value: Any = None

    def __post_init__(self) -> None:
        action = str(self.action).upper()
        if action not in {"ADD", "PUT", "DELETE"}:
            raise ValidationError(f"unsupported update action: {self.action}")
        object.__setattr__(self, "action", action)

        if action == "PUT" and self.value is None:
            raise ValidationError("PUT requires a value (use DELETE to remove an attribute)")
        if action == "ADD":
            if self.value is None:
                raise ValidationError("ADD requires a value")
            if scalar_kind(self.value) not in {"N", None}:
                raise ValidationError("ADD only applies to numbers and sets")
        if action == "DELETE" and self.value is not None and not isinstance(self.value, (set, frozenset)):
            raise ValidationError("DELETE with a value only applies to sets")

    def to_dynamodb(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Action": self.action}
        if self.value is not None:
            out["Value"] = encode_value(self.value)
        return out

    @staticmethod
    def add(value: Any) -> Update:
        return Update(action="ADD", value=value)

    @staticmethod
    def put(value: Any) -> Update:
        return Update(action="PUT", value=value)

    @staticmethod
    def delete(value: Any = None) -> Update:
        return Update(action="DELETE", value=value)


@dataclass(frozen=True)
class BatchGet:
    keys: Sequence[Any]
    consistent: bool = False
    attributes: Sequence[str] | None = None


def _table_name(name: str) -> str:
    if not isinstance(name, str) or not name:
        raise ValidationError("table name is required")
    return name


def _attributes_to_get(attributes: Sequence[str]) -> list[str]:
    if isinstance(attributes, str):
        raise ValidationError("attributes must be a sequence of names, not a string")
    out = list(attributes)
    if not out:
        raise ValidationError("attributes must not be empty")
    return out


def _apply_common(
    req: dict[str, Any],
    *,
    return_consumed_capacity: str | None = None,
    return_values: str | None = None,
    allowed_return_values: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    if return_consumed_capacity is not None:
        if return_consumed_capacity not in _CONSUMED_CAPACITY:
            raise ValidationError(f"unsupported return_consumed_capacity: {return_consumed_capacity}")
        req["ReturnConsumedCapacity"] = return_consumed_capacity
    if return_values is not None:
        if return_values not in allowed_return_values:
            raise ValidationError(f"unsupported return_values: {return_values}")
        req["ReturnValues"] = return_values
    return req


def _exclusive_start_key(after: PageCursor | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(after, PageCursor):
        return after.to_dynamodb()
    return PageCursor(last_key=after).to_dynamodb()


def _check_limit(limit: int | None) -> None:
    if limit is not None and limit <= 0:
        raise ValidationError("limit must be > 0")


def build_create_table_request(schema: TableSchema) -> dict[str, Any]:
    req: dict[str, Any] = {
        "TableName": schema.name,
        "KeySchema": schema.key_schema.to_dynamodb(),
        "AttributeDefinitions": [
            {"AttributeName": attr.name, "AttributeType": attr.type}
            for attr in schema.attribute_definitions()
        ],
    }
    if schema.throughput is None:
        req["BillingMode"] = "PAY_PER_REQUEST"
    else:
        req["BillingMode"] = "PROVISIONED"
        req["ProvisionedThroughput"] = schema.throughput.to_dynamodb()

    gsis: list[dict[str, Any]] = []
    lsis: list[dict[str, Any]] = []
    for idx in schema.indexes:
        desc: dict[str, Any] = {
            "IndexName": idx.name,
            "KeySchema": idx.key_schema(schema.hash_key).to_dynamodb(),
            "Projection": idx.projection.to_dynamodb(),
        }
        if idx.is_global:
            throughput = idx.throughput or schema.throughput
            if throughput is not None:
                desc["ProvisionedThroughput"] = throughput.to_dynamodb()
            gsis.append(desc)
        else:
            lsis.append(desc)

    if lsis:
        req["LocalSecondaryIndexes"] = lsis
    if gsis:
        req["GlobalSecondaryIndexes"] = gsis
    return req


def build_update_table_request(
    name: str,
    throughput: Throughput,
    *,
    index_throughput: Mapping[str, Throughput] | None = None,
) -> dict[str, Any]:
    # The store caps increases at 2x per call; that is left to the store to enforce.
    req: dict[str, Any] = {
        "TableName": _table_name(name),
        "ProvisionedThroughput": throughput.to_dynamodb(),
    }
    if index_throughput:
        req["GlobalSecondaryIndexUpdates"] = [
            {"Update": {"IndexName": index_name, "ProvisionedThroughput": t.to_dynamodb()}}
            for index_name, t in index_throughput.items()
        ]
    return req


def build_describe_table_request(name: str) -> dict[str, Any]:
    return {"TableName": _table_name(name)}


def build_delete_table_request(name: str) -> dict[str, Any]:
    return {"TableName": _table_name(name)}


def build_list_tables_request(*, start: str | None = None, limit: int | None = None) -> dict[str, Any]:
    _check_limit(limit)
    req: dict[str, Any] = {}
    if start is not None:
        req["ExclusiveStartTableName"] = start
    if limit is not None:
        req["Limit"] = limit
    return req


def build_put_item_request(
    table: str,
    item: Mapping[str, Any],
    *,
    expected: Mapping[str, Any] | None = None,
    return_values: str | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    req: dict[str, Any] = {"TableName": _table_name(table), "Item": encode_item(item)}
    if not req["Item"]:
        raise ValidationError("item must not be empty")
    if expected:
        req["Expected"] = build_expected(expected)
    return _apply_common(
        req,
        return_consumed_capacity=return_consumed_capacity,
        return_values=return_values,
        allowed_return_values=_PUT_RETURN_VALUES,
    )


def build_get_item_request(
    table: str,
    key: Any,
    key_schema: KeySchema | None = None,
    *,
    consistent: bool = False,
    attributes: Sequence[str] | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    req: dict[str, Any] = {
        "TableName": _table_name(table),
        "Key": coerce_key(key).to_dynamodb(key_schema),
        "ConsistentRead": bool(consistent),
    }
    if attributes is not None:
        req["AttributesToGet"] = _attributes_to_get(attributes)
    return _apply_common(req, return_consumed_capacity=return_consumed_capacity)


def build_delete_item_request(
    table: str,
    key: Any,
    key_schema: KeySchema | None = None,
    *,
    expected: Mapping[str, Any] | None = None,
    return_values: str | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    req: dict[str, Any] = {
        "TableName": _table_name(table),
        "Key": coerce_key(key).to_dynamodb(key_schema),
    }
    if expected:
        req["Expected"] = build_expected(expected)
    return _apply_common(
        req,
        return_consumed_capacity=return_consumed_capacity,
        return_values=return_values,
        allowed_return_values=_DELETE_RETURN_VALUES,
    )


def build_update_item_request(
    table: str,
    key: Any,
    key_schema: KeySchema | None,
    updates: Mapping[str, Update | tuple[str, Any]],
    *,
    expected: Mapping[str, Any] | None = None,
    return_values: str | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    if not updates:
        raise ValidationError("no updates provided")

    wire_key = coerce_key(key).to_dynamodb(key_schema)
    attribute_updates: dict[str, Any] = {}
    for name, spec in updates.items():
        if name in wire_key:
            raise ValidationError(f"cannot update key attribute: {name}")
        if isinstance(spec, Update):
            update = spec
        elif isinstance(spec, (list, tuple)) and len(spec) == 2:
            update = Update(action=spec[0], value=spec[1])
        else:
            raise ValidationError(f"update for {name} must be an (action, value) pair")
        attribute_updates[name] = update.to_dynamodb()

    req: dict[str, Any] = {
        "TableName": _table_name(table),
        "Key": wire_key,
        "AttributeUpdates": attribute_updates,
    }
    if expected:
        req["Expected"] = build_expected(expected)
    return _apply_common(
        req,
        return_consumed_capacity=return_consumed_capacity,
        return_values=return_values,
        allowed_return_values=_UPDATE_RETURN_VALUES,
    )


def _scan_forward(order: str) -> bool:
    normalized = str(order).lower()
    if normalized == "asc":
        return True
    if normalized == "desc":
        return False
    raise ValidationError(f"order must be 'asc' or 'desc' (got {order!r})")


def build_query_request(
    schema: TableSchema,
    hash_value: Any,
    range_condition: Condition | Sequence[Any] | None = None,
    *,
    order: Order = "asc",
    limit: int | None = None,
    consistent: bool = False,
    attributes: Sequence[str] | None = None,
    index: str | None = None,
    after: PageCursor | Mapping[str, Any] | None = None,
    count: bool = False,
    filters: Mapping[str, Any] | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    if hash_value is None:
        raise ValidationError("hash key value is required")
    _check_limit(limit)
    if index is not None and consistent and schema.index(index).is_global:
        raise ValidationError("consistent reads are not supported on global indexes")
    if count and attributes is not None:
        raise ValidationError("count cannot be combined with attributes")

    key_schema = schema.index_key_schema(index)
    key_conditions: dict[str, Any] = {key_schema.hash_key.name: Condition.eq(hash_value).to_dynamodb()}

    if range_condition is not None:
        if key_schema.range_key is None:
            raise ValidationError("table/index does not define a range key")
        cond = as_condition(range_condition)
        if cond.operator not in KEY_CONDITION_OPERATORS:
            raise ValidationError(f"unsupported range key operator: {cond.operator}")
        key_conditions[key_schema.range_key.name] = cond.to_dynamodb()

    req: dict[str, Any] = {
        "TableName": schema.name,
        "KeyConditions": key_conditions,
        "ScanIndexForward": _scan_forward(order),
        "ConsistentRead": bool(consistent),
    }
    if index is not None:
        req["IndexName"] = index
    if limit is not None:
        req["Limit"] = limit
    if attributes is not None:
        req["AttributesToGet"] = _attributes_to_get(attributes)
    if count:
        req["Select"] = "COUNT"
    if after is not None:
        req["ExclusiveStartKey"] = _exclusive_start_key(after)
    if filters:
        req["QueryFilter"] = build_filter(filters)
    return _apply_common(req, return_consumed_capacity=return_consumed_capacity)


def build_scan_request(
    table: str,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
    attributes: Sequence[str] | None = None,
    after: PageCursor | Mapping[str, Any] | None = None,
    count: bool = False,
    consistent: bool = False,
    index: str | None = None,
    segment: int | None = None,
    total_segments: int | None = None,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    _check_limit(limit)
    if count and attributes is not None:
        raise ValidationError("count cannot be combined with attributes")

    req: dict[str, Any] = {"TableName": _table_name(table), "ConsistentRead": bool(consistent)}
    if filters:
        req["ScanFilter"] = build_filter(filters)
    if index is not None:
        req["IndexName"] = index
    if limit is not None:
        req["Limit"] = limit
    if attributes is not None:
        req["AttributesToGet"] = _attributes_to_get(attributes)
    if count:
        req["Select"] = "COUNT"
    if after is not None:
        req["ExclusiveStartKey"] = _exclusive_start_key(after)

    if (segment is None) != (total_segments is None):
        raise ValidationError("segment and total_segments must be provided together")
    if segment is not None and total_segments is not None:
        if segment < 0 or total_segments <= 0 or segment >= total_segments:
            raise ValidationError("invalid segment/total_segments")
        req["Segment"] = segment
        req["TotalSegments"] = total_segments

    return _apply_common(req, return_consumed_capacity=return_consumed_capacity)


def build_batch_get_request(
    requests: Mapping[str, BatchGet | Sequence[Any]],
    key_schemas: Mapping[str, KeySchema] | None = None,
    *,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    if not requests:
        raise ValidationError("batch get requires at least one table")
    key_schemas = key_schemas or {}

    request_items: dict[str, Any] = {}
    for table, spec in requests.items():
        entry = spec if isinstance(spec, BatchGet) else BatchGet(keys=spec)
        if not entry.keys:
            raise ValidationError(f"batch get for {table} has no keys")

        schema = key_schemas.get(table)
        desc: dict[str, Any] = {"Keys": [coerce_key(k).to_dynamodb(schema) for k in entry.keys]}
        if entry.consistent:
            desc["ConsistentRead"] = True
        if entry.attributes is not None:
            desc["AttributesToGet"] = _attributes_to_get(entry.attributes)
        request_items[_table_name(table)] = desc

    return _apply_common(
        {"RequestItems": request_items}, return_consumed_capacity=return_consumed_capacity
    )


def build_batch_write_request(
    operations: Sequence[tuple[str, str, Any]],
    key_schemas: Mapping[str, KeySchema] | None = None,
    *,
    return_consumed_capacity: str | None = None,
) -> dict[str, Any]:
    if not operations:
        raise ValidationError("batch write requires at least one operation")
    key_schemas = key_schemas or {}

    request_items: dict[str, list[dict[str, Any]]] = {}
    for op in operations:
        if len(op) != 3:
            raise ValidationError("batch write operations are (verb, table, item_or_key) triples")
        verb, table, payload = op
        verb = str(verb).lower()

        if verb == "put":
            item = encode_item(payload)
            if not item:
                raise ValidationError("item must not be empty")
            write = {"PutRequest": {"Item": item}}
        elif verb == "delete":
            write = {"DeleteRequest": {"Key": coerce_key(payload).to_dynamodb(key_schemas.get(table))}}
        else:
            raise ValidationError(f"unsupported batch write verb: {verb}")

        request_items.setdefault(_table_name(table), []).append(write)

    return _apply_common(
        {"RequestItems": request_items}, return_consumed_capacity=return_consumed_capacity
    )


def build_batch_get_retry(unprocessed_keys: Mapping[str, Any]) -> dict[str, Any]:
    if not unprocessed_keys:
        raise ValidationError("nothing to resubmit")
    return {"RequestItems": dict(unprocessed_keys)}


def build_batch_write_retry(unprocessed_items: Mapping[str, Any]) -> dict[str, Any]:
    if not unprocessed_items:
        raise ValidationError("nothing to resubmit")
    return {"RequestItems": dict(unprocessed_items)}
