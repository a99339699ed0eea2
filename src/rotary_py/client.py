from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

import boto3
from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .builders import (
    BatchGet,
    Order,
    Update,
    build_batch_get_request,
    build_batch_get_retry,
    build_batch_write_request,
    build_batch_write_retry,
    build_create_table_request,
    build_delete_item_request,
    build_delete_table_request,
    build_describe_table_request,
    build_get_item_request,
    build_list_tables_request,
    build_put_item_request,
    build_query_request,
    build_scan_request,
    build_update_item_request,
    build_update_table_request,
)
from .conditions import Condition
from .cursor import PageCursor
from .errors import TableNotFoundError, ValidationError
from .keys import Key, coerce_key
from .responses import (
    BatchGetResult,
    BatchWriteResult,
    Item,
    QueryResult,
    ScanResult,
    TableDescription,
    WriteResult,
    decode_batch_get_result,
    decode_batch_write_result,
    decode_item,
    decode_query_result,
    decode_scan_result,
    decode_table_description,
    decode_table_schema,
    decode_write_result,
)
from .schema import KeySchema, TableSchema, Throughput

logger = logging.getLogger(__name__)

# ListTables refuses a larger Limit.
_LIST_TABLES_PAGE_MAX = 100


class Client:
    """Table and item operations over a low-level DynamoDB transport.

    Positional keys (``"id"``, ``(hash, range)``) are named using the table's
    key schema. Schemas come from ``schemas``, :meth:`register_table`,
    :meth:`create_table`, or a one-time ``describe_table`` per table.
    """

    def __init__(self, transport: Any | None = None, *, schemas: Iterable[TableSchema] = ()) -> None:
        self._transport: Any = transport or boto3.client("dynamodb")
        self._schemas: dict[str, TableSchema] = {}
        for schema in schemas:
            self.register_table(schema)

    @property
    def transport(self) -> Any:
        return self._transport

    def register_table(self, schema: TableSchema) -> None:
        self._schemas[schema.name] = schema

    def table_schema(self, name: str) -> TableSchema:
        cached = self._schemas.get(name)
        if cached is not None:
            return cached

        try:
            resp = self._call("describe_table", build_describe_table_request(name))
        except TableNotFoundError as err:
            raise TableNotFoundError(f"table not found: {name}") from err

        schema = decode_table_schema(resp)
        self._schemas[name] = schema
        return schema

    def _call(self, operation: str, req: Mapping[str, Any]) -> Mapping[str, Any]:
        logger.debug("dynamodb %s table=%s", operation, req.get("TableName"))
        try:
            return getattr(self._transport, operation)(**req)
        except ClientError as err:
            raise map_client_error(err) from err

    def _key_schema(self, table: str, key: Key) -> KeySchema | None:
        if key.is_named:
            return None
        return self.table_schema(table).key_schema

    def _key_schemas(self, tables_and_keys: Iterable[tuple[str, Key]]) -> dict[str, KeySchema]:
        out: dict[str, KeySchema] = {}
        for table, key in tables_and_keys:
            if table not in out and not key.is_named:
                out[table] = self.table_schema(table).key_schema
        return out

    # Tables

    def create_table(self, schema: TableSchema) -> TableDescription:
        resp = self._call("create_table", build_create_table_request(schema))
        self.register_table(schema)
        return decode_table_description(resp)

    def update_table(
        self,
        name: str,
        throughput: Throughput,
        *,
        index_throughput: Mapping[str, Throughput] | None = None,
    ) -> TableDescription:
        req = build_update_table_request(name, throughput, index_throughput=index_throughput)
        return decode_table_description(self._call("update_table", req))

    def describe_table(self, name: str) -> TableDescription | None:
        try:
            resp = self._call("describe_table", build_describe_table_request(name))
        except TableNotFoundError:
            return None

        desc = decode_table_description(resp)
        self._schemas[name] = desc.schema
        return desc

    def delete_table(self, name: str) -> None:
        self._call("delete_table", build_delete_table_request(name))
        self._schemas.pop(name, None)

    def list_tables(self, *, limit: int | None = None) -> list[str]:
        names: list[str] = []
        start: str | None = None
        while True:
            page_limit = None if limit is None else min(limit - len(names), _LIST_TABLES_PAGE_MAX)
            resp = self._call("list_tables", build_list_tables_request(start=start, limit=page_limit))
            names.extend(resp.get("TableNames") or [])
            start = resp.get("LastEvaluatedTableName")
            if not start or (limit is not None and len(names) >= limit):
                return names

    # Items

    def put_item(
        self,
        table: str,
        item: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        return_values: str | None = None,
        return_consumed_capacity: str | None = None,
    ) -> WriteResult:
        req = build_put_item_request(
            table,
            item,
            expected=expected,
            return_values=return_values,
            return_consumed_capacity=return_consumed_capacity,
        )
        return decode_write_result(self._call("put_item", req))

    def get_item(
        self,
        table: str,
        key: Any,
        *,
        consistent: bool = False,
        attributes: Sequence[str] | None = None,
    ) -> Item | None:
        k = coerce_key(key)
        req = build_get_item_request(
            table, k, self._key_schema(table, k), consistent=consistent, attributes=attributes
        )
        return decode_item(self._call("get_item", req).get("Item"))

    def delete_item(
        self,
        table: str,
        key: Any,
        *,
        expected: Mapping[str, Any] | None = None,
        return_values: str | None = None,
        return_consumed_capacity: str | None = None,
    ) -> WriteResult:
        k = coerce_key(key)
        req = build_delete_item_request(
            table,
            k,
            self._key_schema(table, k),
            expected=expected,
            return_values=return_values,
            return_consumed_capacity=return_consumed_capacity,
        )
        return decode_write_result(self._call("delete_item", req))

    def update_item(
        self,
        table: str,
        key: Any,
        updates: Mapping[str, Update | tuple[str, Any]],
        *,
        expected: Mapping[str, Any] | None = None,
        return_values: str | None = None,
        return_consumed_capacity: str | None = None,
    ) -> WriteResult:
        k = coerce_key(key)
        req = build_update_item_request(
            table,
            k,
            self._key_schema(table, k),
            updates,
            expected=expected,
            return_values=return_values,
            return_consumed_capacity=return_consumed_capacity,
        )
        return decode_write_result(self._call("update_item", req))

    # Reads

    def query(
        self,
        table: str,
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
    ) -> QueryResult:
        req = build_query_request(
            self.table_schema(table),
            hash_value,
            range_condition,
            order=order,
            limit=limit,
            consistent=consistent,
            attributes=attributes,
            index=index,
            after=after,
            count=count,
            filters=filters,
            return_consumed_capacity=return_consumed_capacity,
        )
        return decode_query_result(self._call("query", req))

    def query_all(
        self,
        table: str,
        hash_value: Any,
        range_condition: Condition | Sequence[Any] | None = None,
        *,
        order: Order = "asc",
        limit: int | None = None,
        consistent: bool = False,
        attributes: Sequence[str] | None = None,
        index: str | None = None,
        after: PageCursor | Mapping[str, Any] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> Iterator[Item]:
        """Yield every matching item, following resume cursors; ``limit`` is the page size."""
        cursor = after
        while True:
            page = self.query(
                table,
                hash_value,
                range_condition,
                order=order,
                limit=limit,
                consistent=consistent,
                attributes=attributes,
                index=index,
                after=cursor,
                filters=filters,
            )
            yield from page.items
            if page.resume_cursor is None:
                return
            cursor = page.resume_cursor

    def scan(
        self,
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
    ) -> ScanResult:
        req = build_scan_request(
            table,
            filters,
            limit=limit,
            attributes=attributes,
            after=after,
            count=count,
            consistent=consistent,
            index=index,
            segment=segment,
            total_segments=total_segments,
            return_consumed_capacity=return_consumed_capacity,
        )
        return decode_scan_result(self._call("scan", req))

    def scan_all(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        attributes: Sequence[str] | None = None,
        after: PageCursor | Mapping[str, Any] | None = None,
        consistent: bool = False,
        index: str | None = None,
        segment: int | None = None,
        total_segments: int | None = None,
    ) -> Iterator[Item]:
        cursor = after
        while True:
            page = self.scan(
                table,
                filters,
                limit=limit,
                attributes=attributes,
                after=cursor,
                consistent=consistent,
                index=index,
                segment=segment,
                total_segments=total_segments,
            )
            yield from page.items
            if page.resume_cursor is None:
                return
            cursor = page.resume_cursor

    # Batches

    def batch_get_item(
        self,
        requests: Mapping[str, BatchGet | Sequence[Any]],
        *,
        return_consumed_capacity: str | None = None,
    ) -> BatchGetResult:
        normalized: dict[str, BatchGet] = {}
        for table, spec in requests.items():
            entry = spec if isinstance(spec, BatchGet) else BatchGet(keys=spec)
            normalized[table] = BatchGet(
                keys=[coerce_key(k) for k in entry.keys],
                consistent=entry.consistent,
                attributes=entry.attributes,
            )

        schemas = self._key_schemas(
            (table, key) for table, entry in normalized.items() for key in entry.keys
        )
        req = build_batch_get_request(
            normalized, schemas, return_consumed_capacity=return_consumed_capacity
        )
        result = decode_batch_get_result(self._call("batch_get_item", req), tables=normalized)
        _log_unprocessed("batch_get_item", result.unprocessed_keys)
        return result

    def batch_write_item(
        self,
        operations: Sequence[tuple[str, str, Any]],
        *,
        return_consumed_capacity: str | None = None,
    ) -> BatchWriteResult:
        normalized: list[tuple[str, str, Any]] = []
        for op in operations:
            if len(op) != 3:
                raise ValidationError("batch write operations are (verb, table, item_or_key) triples")
            verb, table, payload = op
            if str(verb).lower() == "delete":
                payload = coerce_key(payload)
            normalized.append((verb, table, payload))

        schemas = self._key_schemas(
            (table, payload) for _, table, payload in normalized if isinstance(payload, Key)
        )
        req = build_batch_write_request(
            normalized, schemas, return_consumed_capacity=return_consumed_capacity
        )
        result = decode_batch_write_result(self._call("batch_write_item", req))
        _log_unprocessed("batch_write_item", result.unprocessed_items)
        return result

    def resubmit_batch_get(self, unprocessed_keys: Mapping[str, Any]) -> BatchGetResult:
        result = decode_batch_get_result(
            self._call("batch_get_item", build_batch_get_retry(unprocessed_keys)),
            tables=unprocessed_keys,
        )
        _log_unprocessed("batch_get_item", result.unprocessed_keys)
        return result

    def resubmit_batch_write(self, unprocessed_items: Mapping[str, Any]) -> BatchWriteResult:
        result = decode_batch_write_result(
            self._call("batch_write_item", build_batch_write_retry(unprocessed_items))
        )
        _log_unprocessed("batch_write_item", result.unprocessed_items)
        return result


def _log_unprocessed(operation: str, unprocessed: Mapping[str, Any]) -> None:
    for table, pending in unprocessed.items():
        size = len(pending.get("Keys") or []) if isinstance(pending, Mapping) else len(pending)
        logger.warning("%s left %d unprocessed entries for table %s", operation, size, table)
