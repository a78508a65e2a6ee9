"""Firestore value encoding and key transformation between camelCase and snake_case."""

from __future__ import annotations

import base64
import re
from datetime import datetime, timezone
from typing import Any

from dateutil.parser import isoparse

_CAMEL_TO_SNAKE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_SNAKE_TO_CAMEL = re.compile(r"_([a-z])")
# Firestore emits up to nanosecond precision; datetime holds microseconds.
_FRACTION = re.compile(r"\.(\d{6})\d+")


def _to_snake(name: str) -> str:
    return _CAMEL_TO_SNAKE.sub(r"_\1", name).lower()


def _to_camel(name: str) -> str:
    return _SNAKE_TO_CAMEL.sub(lambda m: m.group(1).upper(), name)


def decamelize(data: Any) -> Any:
    """Recursively convert all dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {_to_snake(k): decamelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [decamelize(item) for item in data]
    return data


def camelize(data: Any) -> Any:
    """Recursively convert all dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {_to_camel(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(item) for item in data]
    return data


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as returned by Firestore into an aware datetime."""
    dt = isoparse(_FRACTION.sub(r".\1", value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as an RFC 3339 UTC timestamp."""
    if value.tzinfo is None:
        raise ValueError(f"Refusing to store naive datetime {value!r}")
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def decode_value(value: dict[str, Any]) -> Any:
    """Convert a single Firestore typed value into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "bytesValue" in value:
        return base64.b64decode(value["bytesValue"])
    if "geoPointValue" in value:
        point = value["geoPointValue"]
        return (point.get("latitude", 0.0), point.get("longitude", 0.0))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise ValueError(f"Unsupported Firestore value: {value!r}")


def encode_value(value: Any) -> dict[str, Any]:
    """Convert a Python value into a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    # bool is a subclass of int, so it must be checked first.
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_timestamp(value)}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, (set, frozenset)):
        return {"arrayValue": {"values": [encode_value(v) for v in sorted(value)]}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Decode a Firestore ``fields`` mapping."""
    return {key: decode_value(val) for key, val in fields.items()}


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Encode a plain dict into a Firestore ``fields`` mapping."""
    return {key: encode_value(val) for key, val in data.items()}
