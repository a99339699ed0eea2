from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class PageCursor:
    """Where a query or scan should resume.

    ``last_key`` is the store's ``LastEvaluatedKey`` kept verbatim; it is handed
    back as ``ExclusiveStartKey`` without being rebuilt, since it may also carry
    index key attributes.
    """

    last_key: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.last_key, Mapping) or not self.last_key:
            raise ValidationError("cursor last_key must be a non-empty map")

    def to_dynamodb(self) -> dict[str, Any]:
        return dict(self.last_key)

    def to_token(self) -> str:
        try:
            payload = {str(k): _av_to_json(self.last_key[k]) for k in sorted(self.last_key)}
        except (TypeError, ValueError) as err:
            raise ValidationError(f"invalid cursor: {err}") from err
        data = json.dumps({"lastKey": payload}, separators=(",", ":"), ensure_ascii=False)
        return base64.urlsafe_b64encode(data.encode("utf-8")).decode("ascii")

    @classmethod
    def from_token(cls, token: str) -> PageCursor:
        raw = str(token or "").strip()
        if not raw:
            raise ValidationError("cursor is empty")

        padding = "=" * (-len(raw) % 4)
        try:
            parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
        except ValueError as err:
            raise ValidationError("invalid cursor") from err

        if not isinstance(parsed, dict) or not isinstance(parsed.get("lastKey"), dict):
            raise ValidationError("cursor lastKey is invalid")

        last_key_raw = parsed["lastKey"]
        try:
            return cls(last_key={str(k): _av_from_json(last_key_raw[k]) for k in sorted(last_key_raw)})
        except ValueError as err:
            raise ValidationError(f"invalid cursor: {err}") from err


def _ensure_single_key_map(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((key, inner),) = value.items()
    return str(key), inner


def _av_to_json(av: Any) -> dict[str, Any]:
    kind, value = _ensure_single_key_map(av)

    if kind in {"S", "N"}:
        return {kind: str(value)}
    if kind == "B":
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}
    if kind in {"SS", "NS"}:
        return {kind: [str(v) for v in value]}
    if kind == "BS":
        return {"BS": [base64.b64encode(bytes(v)).decode("ascii") for v in value]}
    if kind in {"BOOL", "NULL"}:
        return {kind: bool(value)}
    if kind == "L":
        return {"L": [_av_to_json(v) for v in value]}
    if kind == "M":
        return {"M": {str(k): _av_to_json(value[k]) for k in sorted(value)}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def _av_from_json(enc: Any) -> dict[str, Any]:
    kind, value = _ensure_single_key_map(enc)

    if kind in {"S", "N"}:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind == "B":
        if not isinstance(value, str):
            raise ValueError("B value must be a base64 string")
        return {"B": base64.b64decode(value)}
    if kind in {"SS", "NS"}:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{kind} value must be a list of strings")
        return {kind: value}
    if kind == "BS":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("BS value must be a list of base64 strings")
        return {"BS": [base64.b64decode(v) for v in value]}
    if kind in {"BOOL", "NULL"}:
        if not isinstance(value, bool):
            raise ValueError(f"{kind} value must be a boolean")
        return {kind: value}
    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {"L": [_av_from_json(v) for v in value]}
    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {"M": {str(k): _av_from_json(value[k]) for k in sorted(value)}}

    raise ValueError(f"unsupported attribute value type: {kind}")
