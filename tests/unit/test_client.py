from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from rotary_py import Client, MustNotExist, PageCursor, Update
from rotary_py.builders import (
    BatchGet,
    build_batch_get_request,
    build_batch_write_request,
    build_batch_write_retry,
    build_create_table_request,
    build_delete_item_request,
    build_delete_table_request,
    build_describe_table_request,
    build_get_item_request,
    build_put_item_request,
    build_query_request,
    build_scan_request,
    build_update_item_request,
    build_update_table_request,
)
from rotary_py.errors import ConditionalCheckFailedError, TableNotFoundError, ValidationError
from rotary_py.schema import KeyAttribute, KeySchema, TableSchema, Throughput
from rotary_py.testkit import ANY, StubbedTransport

USERS = TableSchema(
    name="users",
    key_schema=KeySchema(hash_key=KeyAttribute.string("user"), range_key=KeyAttribute.string("name")),
    throughput=Throughput(read=1, write=1),
)

USERS_DESCRIPTION = {
    "Table": {
        "TableName": "users",
        "TableStatus": "ACTIVE",
        "KeySchema": [
            {"AttributeName": "user", "KeyType": "HASH"},
            {"AttributeName": "name", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "user", "AttributeType": "S"},
            {"AttributeName": "name", "AttributeType": "S"},
        ],
        "ProvisionedThroughput": {"ReadCapacityUnits": 1, "WriteCapacityUnits": 1},
    }
}


def _client(stub: StubbedTransport) -> Client:
    return Client(stub.transport, schemas=[USERS])


def _described(status: str) -> dict:
    return {"Table": {**USERS_DESCRIPTION["Table"], "TableStatus": status}}


def test_create_table_registers_schema() -> None:
    stub = StubbedTransport()
    stub.expect(
        "create_table",
        build_create_table_request(USERS),
        response={"TableDescription": _described("CREATING")["Table"]},
    )
    stub.expect("get_item", build_get_item_request("users", ("u", "n"), USERS.key_schema))

    client = Client(stub.transport)
    desc = client.create_table(USERS)
    assert desc.status == "creating"
    assert client.get_item("users", ("u", "n")) is None
    stub.assert_no_pending()


def test_describe_table_missing_returns_none() -> None:
    stub = StubbedTransport()
    stub.expect_table_not_found("describe_table", "nope", build_describe_table_request("nope"))

    assert Client(stub.transport).describe_table("nope") is None
    stub.assert_no_pending()


def test_positional_keys_describe_the_table_once() -> None:
    stub = StubbedTransport()
    stub.expect("describe_table", build_describe_table_request("users"), response=USERS_DESCRIPTION)
    stub.expect("get_item", build_get_item_request("users", ("u", "a"), USERS.key_schema))
    stub.expect("get_item", build_get_item_request("users", ("u", "b"), USERS.key_schema))

    client = Client(stub.transport)
    client.get_item("users", ["u", "a"])
    client.get_item("users", ["u", "b"])
    stub.assert_no_pending()


@pytest.mark.parametrize("status", ["ARCHIVED", "INACCESSIBLE_ENCRYPTION_CREDENTIALS", "MIGRATING"])
def test_positional_keys_work_whatever_the_table_status(status: str) -> None:
    stub = StubbedTransport()
    stub.expect("describe_table", build_describe_table_request("users"), response=_described(status))
    stub.expect("delete_item", build_delete_item_request("users", ("u", "a"), USERS.key_schema))

    client = Client(stub.transport)
    assert client.delete_item("users", ("u", "a")).attributes is None
    assert client.table_schema("users").key_schema == USERS.key_schema
    stub.assert_no_pending()


def test_describe_table_reports_archived_status() -> None:
    stub = StubbedTransport()
    stub.expect("describe_table", build_describe_table_request("users"), response=_described("ARCHIVING"))

    desc = Client(stub.transport).describe_table("users")
    assert desc is not None
    assert desc.status == "archiving"


def test_positional_key_on_missing_table_raises() -> None:
    stub = StubbedTransport()
    stub.expect_table_not_found("describe_table", "ghost")

    with pytest.raises(TableNotFoundError, match="table not found: ghost"):
        Client(stub.transport).get_item("ghost", "a")


def test_named_keys_skip_schema_lookup() -> None:
    stub = StubbedTransport()
    stub.expect(
        "get_item",
        {"TableName": "other", "Key": {"pk": {"S": "a"}}, "ConsistentRead": True},
        response={"Item": {"pk": {"S": "a"}, "n": {"N": "2"}}},
    )

    item = Client(stub.transport).get_item("other", {"pk": "a"}, consistent=True)
    assert item == {"pk": "a", "n": Decimal(2)}
    stub.assert_no_pending()


def test_put_item_conditional_failure_is_mapped() -> None:
    item = {"user": "u", "name": "n"}
    stub = StubbedTransport()
    stub.expect_error(
        "put_item",
        "ConditionalCheckFailedException",
        "The conditional request failed",
        build_put_item_request("users", item, expected={"user": MustNotExist()}),
    )

    with pytest.raises(ConditionalCheckFailedError) as exc_info:
        _client(stub).put_item("users", item, expected={"user": MustNotExist()})
    assert exc_info.value.__cause__ is not None


def test_put_item_returns_old_attributes() -> None:
    item = {"user": "u", "name": "n", "v": 2}
    stub = StubbedTransport()
    stub.expect(
        "put_item",
        build_put_item_request("users", item, return_values="ALL_OLD"),
        response={"Attributes": {"user": {"S": "u"}, "name": {"S": "n"}, "v": {"N": "1"}}},
    )

    result = _client(stub).put_item("users", item, return_values="ALL_OLD")
    assert result.attributes == {"user": "u", "name": "n", "v": Decimal(1)}


def test_update_and_delete_item() -> None:
    stub = StubbedTransport()
    stub.expect(
        "update_item",
        {
            "TableName": "users",
            "Key": {"user": {"S": "u"}, "name": {"S": "n"}},
            "AttributeUpdates": {"visits": {"Action": "ADD", "Value": {"N": "1"}}},
            "ReturnValues": "UPDATED_NEW",
        },
        response={"Attributes": {"visits": {"N": "3"}}},
    )
    stub.expect("delete_item", build_delete_item_request("users", ("u", "n"), USERS.key_schema))

    client = _client(stub)
    updated = client.update_item("users", ("u", "n"), {"visits": Update.add(1)}, return_values="UPDATED_NEW")
    assert updated.attributes == {"visits": Decimal(3)}
    assert client.delete_item("users", ("u", "n")).attributes is None
    stub.assert_no_pending()


def test_update_item_with_expectation() -> None:
    key = ("u", "n")
    updates = {"name2": Update.put("x")}
    stub = StubbedTransport()
    stub.expect(
        "update_item",
        build_update_item_request("users", key, USERS.key_schema, updates, expected={"visits": 3}),
    )

    assert _client(stub).update_item("users", key, updates, expected={"visits": 3}).attributes is None
    stub.assert_no_pending()


def test_query_follows_cursor_in_query_all() -> None:
    last = {"user": {"S": "u"}, "name": {"S": "Bob"}}
    stub = StubbedTransport()
    stub.expect(
        "query",
        {
            "TableName": "users",
            "KeyConditions": {"user": ANY},
            "ScanIndexForward": True,
            "ConsistentRead": False,
            "Limit": 1,
        },
        response={
            "Items": [{"user": {"S": "u"}, "name": {"S": "Bob"}}],
            "Count": 1,
            "LastEvaluatedKey": last,
        },
    )
    stub.expect(
        "query",
        build_query_request(USERS, "u", limit=1, after=PageCursor(last_key=last)),
        response={"Items": [{"user": {"S": "u"}, "name": {"S": "Rob"}}], "Count": 1},
    )

    names = [item["name"] for item in _client(stub).query_all("users", "u", limit=1)]
    assert names == ["Bob", "Rob"]
    stub.assert_no_pending()


def test_query_with_range_condition() -> None:
    stub = StubbedTransport()
    stub.expect(
        "query",
        {
            "TableName": "users",
            "KeyConditions": {
                "user": {"ComparisonOperator": "EQ", "AttributeValueList": [{"S": "u"}]},
                "name": {"ComparisonOperator": "LE", "AttributeValueList": [{"S": "Rob"}]},
            },
            "ScanIndexForward": False,
            "ConsistentRead": False,
        },
        response={"Items": [], "Count": 0},
    )

    result = _client(stub).query("users", "u", ("<=", "Rob"), order="desc")
    assert result.items == []
    assert result.resume_cursor is None


def test_scan_all_pages() -> None:
    stub = StubbedTransport()
    stub.expect(
        "scan",
        build_scan_request("users"),
        response={"Items": [{"user": {"S": "a"}}], "Count": 1, "LastEvaluatedKey": {"user": {"S": "a"}}},
    )
    stub.expect(
        "scan",
        build_scan_request("users", after={"user": {"S": "a"}}),
        response={"Items": [{"user": {"S": "b"}}], "Count": 1},
    )

    assert [i["user"] for i in _client(stub).scan_all("users")] == ["a", "b"]
    stub.assert_no_pending()


def test_batch_get_item_names_keys_and_logs_unprocessed(caplog: pytest.LogCaptureFixture) -> None:
    requests = {"users": BatchGet(keys=[("u", "a"), ("u", "b")], consistent=True)}
    stub = StubbedTransport()
    stub.expect(
        "batch_get_item",
        build_batch_get_request(requests, {"users": USERS.key_schema}),
        response={
            "Responses": {"users": [{"user": {"S": "u"}, "name": {"S": "a"}}]},
            "UnprocessedKeys": {"users": {"Keys": [{"user": {"S": "u"}, "name": {"S": "b"}}]}},
        },
    )

    with caplog.at_level(logging.WARNING, logger="rotary_py.client"):
        result = _client(stub).batch_get_item(requests)

    assert result.responses == {"users": [{"user": "u", "name": "a"}]}
    assert list(result.unprocessed_keys) == ["users"]
    assert "1 unprocessed entries for table users" in caplog.text


def test_batch_write_item_and_resubmit() -> None:
    operations = [("put", "users", {"user": "u", "name": "a"}), ("delete", "users", ("u", "b"))]
    pending = {"users": [{"DeleteRequest": {"Key": {"user": {"S": "u"}, "name": {"S": "b"}}}}]}
    stub = StubbedTransport()
    stub.expect(
        "batch_write_item",
        build_batch_write_request(operations, {"users": USERS.key_schema}),
        response={"UnprocessedItems": pending},
    )
    stub.expect("batch_write_item", build_batch_write_retry(pending), response={"UnprocessedItems": {}})

    client = _client(stub)
    first = client.batch_write_item(operations)
    assert first.unprocessed_items == pending
    assert client.resubmit_batch_write(first.unprocessed_items).unprocessed_items == {}
    stub.assert_no_pending()


def test_batch_write_item_rejects_malformed_operations() -> None:
    with pytest.raises(ValidationError, match="triples"):
        _client(StubbedTransport()).batch_write_item([("put", "users")])  # type: ignore[list-item]


def test_list_tables_paginates() -> None:
    stub = StubbedTransport()
    stub.expect(
        "list_tables",
        {},
        response={"TableNames": ["alpha", "beta"], "LastEvaluatedTableName": "beta"},
    )
    stub.expect("list_tables", {"ExclusiveStartTableName": "beta"}, response={"TableNames": ["gamma"]})

    assert Client(stub.transport).list_tables() == ["alpha", "beta", "gamma"]
    stub.assert_no_pending()


def test_list_tables_respects_limit() -> None:
    stub = StubbedTransport()
    stub.expect(
        "list_tables",
        {"Limit": 2},
        response={"TableNames": ["alpha", "beta"], "LastEvaluatedTableName": "beta"},
    )

    assert Client(stub.transport).list_tables(limit=2) == ["alpha", "beta"]
    stub.assert_no_pending()


def test_list_tables_caps_each_page_at_one_hundred() -> None:
    names = [f"t{i:03d}" for i in range(300)]
    stub = StubbedTransport()
    stub.expect(
        "list_tables",
        {"Limit": 100},
        response={"TableNames": names[:100], "LastEvaluatedTableName": names[99]},
    )
    stub.expect(
        "list_tables",
        {"ExclusiveStartTableName": names[99], "Limit": 100},
        response={"TableNames": names[100:200], "LastEvaluatedTableName": names[199]},
    )
    stub.expect(
        "list_tables",
        {"ExclusiveStartTableName": names[199], "Limit": 50},
        response={"TableNames": names[200:250], "LastEvaluatedTableName": names[249]},
    )

    assert Client(stub.transport).list_tables(limit=250) == names[:250]
    stub.assert_no_pending()


def test_delete_table_forgets_schema() -> None:
    stub = StubbedTransport()
    stub.expect("delete_table", build_delete_table_request("users"))
    stub.expect_table_not_found("describe_table", "users", build_describe_table_request("users"))

    client = _client(stub)
    assert client.delete_table("users") is None
    with pytest.raises(TableNotFoundError):
        client.table_schema("users")
    stub.assert_no_pending()


def test_update_table() -> None:
    stub = StubbedTransport()
    stub.expect(
        "update_table",
        build_update_table_request("users", Throughput(read=2, write=2)),
        response={"TableDescription": _described("UPDATING")["Table"]},
    )

    desc = _client(stub).update_table("users", Throughput(read=2, write=2))
    assert desc.status == "updating"
