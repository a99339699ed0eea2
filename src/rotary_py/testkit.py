from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import boto3
from botocore.exceptions import ClientError
from botocore.stub import ANY, Stubber


class StubbedTransport:
    """A real low-level DynamoDB client answered from a script.

    Calls are checked by botocore's ``Stubber`` against the service model, so a
    request the store would reject fails here too. ``request`` is compared with
    the call's parameters key for key; pass the output of a ``build_*`` function
    or a literal dict, with ``ANY`` for parts the test does not care about.
    """

    def __init__(self, *, region: str = "us-east-1") -> None:
        self.transport = boto3.client(
            "dynamodb",
            region_name=region,
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )
        self._stubber = Stubber(self.transport)
        self._stubber.activate()

    def expect(
        self,
        operation: str,
        request: Mapping[str, Any] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
    ) -> None:
        self._stubber.add_response(
            operation,
            dict(response or {}),
            None if request is None else dict(request),
        )

    def expect_error(
        self,
        operation: str,
        code: str,
        message: str = "",
        request: Mapping[str, Any] | None = None,
        *,
        http_status: int = 400,
    ) -> None:
        self._stubber.add_client_error(
            operation,
            service_error_code=code,
            service_message=message,
            http_status_code=http_status,
            expected_params=None if request is None else dict(request),
        )

    def expect_table_not_found(
        self, operation: str, table: str, request: Mapping[str, Any] | None = None
    ) -> None:
        self.expect_error(
            operation,
            "ResourceNotFoundException",
            f"Requested resource not found: Table: {table} not found",
            request,
        )

    def assert_no_pending(self) -> None:
        self._stubber.assert_no_pending_responses()


def client_error(code: str, message: str = "", *, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def table_not_found(table: str, *, operation: str = "DescribeTable") -> ClientError:
    return client_error(
        "ResourceNotFoundException",
        f"Requested resource not found: Table: {table} not found",
        operation=operation,
    )


__all__ = [
    "ANY",
    "StubbedTransport",
    "client_error",
    "table_not_found",
]
