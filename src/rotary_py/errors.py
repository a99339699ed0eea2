from __future__ import annotations


class RotaryPyError(Exception):
    pass


class ValidationError(RotaryPyError):
    pass


class ValueKindError(ValidationError):
    pass


class NotFoundError(RotaryPyError):
    pass


class TableNotFoundError(NotFoundError):
    pass


class ConditionalCheckFailedError(RotaryPyError):
    pass


class TransportError(RotaryPyError):
    def __init__(self, *, code: str, message: str, retryable: bool = False) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.retryable = retryable


class ThroughputExceededError(TransportError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(code=code, message=message, retryable=True)
