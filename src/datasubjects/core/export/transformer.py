# src/datasubjects/core/export/transformer.py
"""Normalization of raw exported rows.

Per row, in order:
1. Binary columns are hex-encoded.
2. Every column with a registered dimension is passed through the
   dimension's format_value().
3. Every other non-empty column is offered to the decompressor and replaced
   whenever decompression succeeds, even if the text is empty.

Action-name enrichment rows get their own pass (normalize_action_names).
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from typing import Any

from datasubjects.contracts import SITE_ID_COLUMN, Decompressor, Dimension, ExportRows
from datasubjects.core.export.decompress import ZlibDecompressor
from datasubjects.core.export.urls import reconstruct_normalized_url


def _hex(value: Any) -> Any:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).hex()
    return value


class RowTransformer:
    """Normalize exported rows for one export call.

    Args:
        dimensions: Registered dimensions; those owned by other tables are ignored
        decompressor: Decompression capability (zlib by default)
    """

    def __init__(
        self,
        dimensions: Iterable[Dimension] = (),
        decompressor: Decompressor | None = None,
    ) -> None:
        self._dimensions: dict[tuple[str, str], Dimension] = {}
        for dimension in dimensions:
            if dimension.owner_table and dimension.owner_column:
                self._dimensions[(dimension.owner_table, dimension.owner_column)] = dimension
        self._decompressor: Decompressor = decompressor if decompressor is not None else ZlibDecompressor()

    def dimension_for(self, table: str, column: str) -> Dimension | None:
        return self._dimensions.get((table, column))

    def binary_columns(self, table: str, reflected: Collection[str] = ()) -> set[str]:
        """Reflected binary columns of a table plus columns with a BINARY dimension."""
        columns = set(reflected)
        columns.update(column for (owner, column), dim in self._dimensions.items() if owner == table and dim.is_binary)
        return columns

    def transform(self, table: str, rows: Sequence[dict[str, Any]], binary_columns: Collection[str] = ()) -> ExportRows:
        """Return normalized copies of ``rows``. The input rows are not modified."""
        return [self._transform_row(table, row, binary_columns) for row in rows]

    def _transform_row(self, table: str, row: dict[str, Any], binary_columns: Collection[str]) -> dict[str, Any]:
        out = dict(row)
        for column in binary_columns:
            if out.get(column) is not None:
                out[column] = _hex(out[column])

        site_id = out.get(SITE_ID_COLUMN)
        for column, value in list(out.items()):
            dimension = self.dimension_for(table, column)
            if dimension is not None:
                out[column] = dimension.format_value(value, site_id)
            elif value:
                decompressed = self._decompressor.try_decompress(value)
                if decompressed is not None:
                    out[column] = decompressed
        return out


def normalize_action_names(rows: Iterable[dict[str, Any]]) -> ExportRows:
    """Finish (idaction, name, url_prefix) rows from the enrichment query.

    Reconstructs full URLs where a prefix is present, drops url_prefix,
    removes duplicate rows and sorts by idaction.
    """
    seen: set[tuple[Any, Any]] = set()
    result: ExportRows = []
    for row in rows:
        name = row.get("name")
        if row.get("url_prefix") is not None:
            name = reconstruct_normalized_url(name, row["url_prefix"])
        normalized = {"idaction": row["idaction"], "name": name}
        key = (normalized["idaction"], normalized["name"])
        if key in seen:
            continue
        seen.add(key)
        result.append(normalized)
    result.sort(key=lambda r: r["idaction"])
    return result
