"""Export-side normalization and serialization."""

from datasubjects.core.export.decompress import NullDecompressor, ZlibDecompressor
from datasubjects.core.export.formatters import (
    CountsTextFormatter,
    JSONFormatter,
    serialize_export,
    serialize_value,
)
from datasubjects.core.export.transformer import RowTransformer, normalize_action_names
from datasubjects.core.export.urls import URL_PREFIXES, reconstruct_normalized_url

__all__ = [
    "URL_PREFIXES",
    "CountsTextFormatter",
    "JSONFormatter",
    "NullDecompressor",
    "RowTransformer",
    "ZlibDecompressor",
    "normalize_action_names",
    "reconstruct_normalized_url",
    "serialize_export",
    "serialize_value",
]
