# src/datasubjects/contracts/protocols.py
"""Capability interfaces injected into the data subject service.

The service never reaches for a global registry. Everything it needs to know
about registered tables, dimensions and third-party extensions arrives
through these protocols at construction time. PluginManager implements all
of them; tests usually pass small in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, TypeAlias, runtime_checkable

from datasubjects.contracts.dimensions import Dimension
from datasubjects.contracts.tables import LogTable
from datasubjects.contracts.visits import VisitKey

ExportRows: TypeAlias = list[dict[str, Any]]

ErasureExtensionPoint = Callable[[Sequence[VisitKey]], Mapping[str, int]]
"""Called once per erasure, after every join path resolves and before any core DELETE.

Returns counts for anything the extension erased itself, keyed by a name of
its choosing.
"""

ExportExtensionPoint = Callable[[Sequence[VisitKey]], Mapping[str, Any]]
"""Called once per export, after core tables are processed.

Returned keys are merged into the export, replacing existing keys.
"""


@runtime_checkable
class TableCatalog(Protocol):
    """Source of registered log table descriptors."""

    def get_all_tables(self) -> Sequence[LogTable]:
        """Return every registered table."""
        ...

    def get_table(self, name: str) -> LogTable | None:
        """Return the table registered under ``name``, or None."""
        ...


@runtime_checkable
class DimensionRegistry(Protocol):
    """Source of registered column dimensions."""

    def get_all_dimensions(self) -> Sequence[Dimension]:
        """Return every registered dimension."""
        ...


@runtime_checkable
class Decompressor(Protocol):
    """Opportunistic decompression of exported column values."""

    def try_decompress(self, value: Any) -> str | None:
        """Return the decompressed text, or None if the value is not compressed."""
        ...
