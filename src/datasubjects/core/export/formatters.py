# src/datasubjects/core/export/formatters.py
"""Serialization of export results.

Export rows come straight from the database driver and may hold datetimes,
Decimals and raw bytes. serialize_export() turns a result mapping into plain
JSON-compatible structures; JSONFormatter renders it.
"""

import json
import math
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def serialize_value(obj: Any) -> Any:
    """Convert a value (recursively) to a JSON-serializable structure.

    - datetime/date/time -> ISO-8601 string
    - bytes/bytearray/memoryview -> lowercase hex
    - Decimal -> string (no precision loss)
    - mappings, lists and tuples are processed recursively

    Raises:
        ValueError: If NaN or Infinity values are encountered
    """
    if isinstance(obj, float):
        if math.isnan(obj):
            raise ValueError("NaN values are not allowed in exported data")
        if math.isinf(obj):
            raise ValueError("Infinity values are not allowed in exported data")
        return obj

    if isinstance(obj, datetime | date | time):
        return obj.isoformat()
    if isinstance(obj, bytes | bytearray | memoryview):
        return bytes(obj).hex()
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Non-finite decimal values are not allowed in exported data: {obj}")
        return str(obj)
    if isinstance(obj, Mapping):
        return {str(k): serialize_value(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [serialize_value(item) for item in obj]
    return obj


def serialize_export(results: Mapping[str, Any]) -> dict[str, Any]:
    """Serialize an export result mapping, preserving key order."""
    return {key: serialize_value(value) for key, value in results.items()}


class JSONFormatter:
    """Format export results as a JSON document."""

    def __init__(self, *, indent: int | None = 2) -> None:
        self._indent = indent

    def format(self, results: Mapping[str, Any]) -> str:
        normalized = serialize_export(results)
        return json.dumps(normalized, indent=self._indent, allow_nan=False)


class CountsTextFormatter:
    """Format erasure counts as aligned ``table: count`` lines for CLI output."""

    def format(self, results: Mapping[str, Any]) -> str:
        if not results:
            return "Nothing deleted."
        width = max(len(key) for key in results)
        return "\n".join(f"{key.ljust(width)}  {count}" for key, count in results.items())
