from __future__ import annotations

from collections.abc import Iterator

import pytest
from moto import mock_aws

from rotary_py import Client, ClientRegistry, ConnectionConfig
from rotary_py.schema import KeyAttribute, KeySchema, TableSchema, Throughput

USERS = TableSchema(
    name="users",
    key_schema=KeySchema(hash_key=KeyAttribute.string("user"), range_key=KeyAttribute.string("name")),
    throughput=Throughput(read=5, write=5),
)

SCORES = TableSchema(
    name="scores",
    key_schema=KeySchema(hash_key=KeyAttribute.string("game"), range_key=KeyAttribute.number("points")),
)

THINGS = TableSchema(name="things", key_schema=KeySchema(hash_key=KeyAttribute.string("id")))


@pytest.fixture
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("DYNAMODB_ENDPOINT", raising=False)


@pytest.fixture
def client(aws_env: None) -> Iterator[Client]:
    with mock_aws():
        registry = ClientRegistry()
        yield registry.client(ConnectionConfig.from_env())
        registry.clear()


@pytest.fixture
def tables(client: Client) -> Client:
    for schema in (USERS, SCORES, THINGS):
        client.create_table(schema)
    return client
