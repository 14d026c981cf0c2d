# src/datasubjects/core/export/decompress.py
"""Opportunistic decompression of exported values.

Some plugins store zlib-compressed blobs in ordinary columns. Nothing in the
schema marks them, so every non-empty value that has no dimension is run
through the decompressor and kept unchanged when decompression fails.
"""

import zlib
from typing import Any


class ZlibDecompressor:
    """Decompress zlib streams, returning None for anything that isn't one."""

    def try_decompress(self, value: Any) -> str | None:
        if isinstance(value, memoryview):
            data = value.tobytes()
        elif isinstance(value, bytes | bytearray):
            data = bytes(value)
        elif isinstance(value, str):
            try:
                # Drivers hand back some blob columns as str
                data = value.encode("latin-1")
            except UnicodeEncodeError:
                return None
        else:
            return None

        if not data:
            return None
        try:
            decompressed = zlib.decompress(data)
        except zlib.error:
            return None
        return decompressed.decode("utf-8", errors="replace")


class NullDecompressor:
    """Decompressor that never decompresses anything."""

    def try_decompress(self, value: Any) -> str | None:
        return None
