from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .builders import BatchGet, Update
from .codec import AttributeValue, canonical_number, decode_value, encode_item, encode_value
from .conditions import (
    Condition,
    Expectation,
    MustEqual,
    MustExist,
    MustNotExist,
    build_condition,
    build_expected,
    build_filter,
    normalize_operator,
)
from .cursor import PageCursor
from .errors import (
    ConditionalCheckFailedError,
    NotFoundError,
    RotaryPyError,
    TableNotFoundError,
    ThroughputExceededError,
    TransportError,
    ValidationError,
    ValueKindError,
)
from .keys import Key, build_key, coerce_key, decode_key
from .responses import (
    BatchGetResult,
    BatchWriteResult,
    QueryResult,
    ScanResult,
    TableDescription,
    ThroughputDescription,
    WriteResult,
    decode_item,
    decode_table_description,
)
from .schema import IndexSchema, KeyAttribute, KeySchema, Projection, TableSchema, Throughput

if TYPE_CHECKING:
    from .client import Client
    from .runtime import (
        AwsCallMetric,
        ClientRegistry,
        ConnectionConfig,
        create_boto3_config,
        instrument_boto3_client,
    )


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Client":
        from .client import Client

        return Client
    if name in {
        "AwsCallMetric",
        "ClientRegistry",
        "ConnectionConfig",
        "create_boto3_config",
        "instrument_boto3_client",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeValue",
    "AwsCallMetric",
    "BatchGet",
    "BatchGetResult",
    "BatchWriteResult",
    "build_condition",
    "build_expected",
    "build_filter",
    "build_key",
    "canonical_number",
    "Client",
    "ClientRegistry",
    "coerce_key",
    "Condition",
    "ConditionalCheckFailedError",
    "ConnectionConfig",
    "create_boto3_config",
    "decode_item",
    "decode_key",
    "decode_table_description",
    "decode_value",
    "encode_item",
    "encode_value",
    "Expectation",
    "IndexSchema",
    "instrument_boto3_client",
    "Key",
    "KeyAttribute",
    "KeySchema",
    "MustEqual",
    "MustExist",
    "MustNotExist",
    "normalize_operator",
    "NotFoundError",
    "PageCursor",
    "Projection",
    "QueryResult",
    "RotaryPyError",
    "ScanResult",
    "TableDescription",
    "TableNotFoundError",
    "TableSchema",
    "ThroughputDescription",
    "Throughput",
    "ThroughputExceededError",
    "TransportError",
    "Update",
    "ValidationError",
    "ValueKindError",
    "WriteResult",
    "__repo_version__",
    "__version__",
]
