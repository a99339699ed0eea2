from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import (
    ConditionalCheckFailedError,
    TableNotFoundError,
    ThroughputExceededError,
    TransportError,
    ValidationError,
)

_THROUGHPUT_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
    }
)

_RETRYABLE_CODES = frozenset({"InternalServerError", "ServiceUnavailable"})


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def map_client_error(err: ClientError) -> Exception:
    code = error_code(err)
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ConditionalCheckFailedException":
        return ConditionalCheckFailedError(message or "conditional check failed")
    if code == "ResourceNotFoundException":
        return TableNotFoundError(message or "requested resource not found")
    if code == "ValidationException":
        return ValidationError(message)
    if code in _THROUGHPUT_CODES:
        return ThroughputExceededError(code=code, message=message or str(err))

    return TransportError(
        code=code or "UnknownError",
        message=message or str(err),
        retryable=code in _RETRYABLE_CODES,
    )
