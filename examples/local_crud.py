from __future__ import annotations

import logging
import uuid

from rotary_py import ClientRegistry, ConnectionConfig, KeyAttribute, KeySchema, MustNotExist, TableSchema


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)

    cfg = ConnectionConfig.from_env()
    if cfg.endpoint_url is None:
        cfg = ConnectionConfig(
            region=cfg.region or "us-east-1",
            endpoint_url="http://localhost:8000",
            access_key_id=cfg.access_key_id or "dummy",
            secret_access_key=cfg.secret_access_key or "dummy",
        )

    registry = ClientRegistry()
    client = registry.client(cfg)
    table_name = f"rotary_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableSchema(
            name=table_name,
            key_schema=KeySchema(hash_key=KeyAttribute.string("pk"), range_key=KeyAttribute.string("sk")),
        )
    )
    client.transport.get_waiter("table_exists").wait(TableName=table_name)

    try:
        client.put_item(table_name, {"pk": "A", "sk": "001", "value": 1}, expected={"pk": MustNotExist()})
        client.put_item(table_name, {"pk": "A", "sk": "010", "value": 10})
        client.put_item(table_name, {"pk": "A", "sk": "100", "value": 100})

        print("get:", client.get_item(table_name, ("A", "010")))

        page = client.query(table_name, "A", ("begins_with", "0"))
        print("query begins_with('0'):", page.items)
    finally:
        client.delete_table(table_name)


if __name__ == "__main__":
    main()
