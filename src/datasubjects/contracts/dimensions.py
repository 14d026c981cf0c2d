# src/datasubjects/contracts/dimensions.py
"""Dimension descriptors attached to individual log table columns.

A dimension carries typing, formatting and join metadata for one
(table, column) pair. Plugins subclass Dimension and register instances
through the DimensionRegistry.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from datasubjects.contracts.tables import ACTION_TABLE


class DimensionType(StrEnum):
    """Value type of a dimension column."""

    TEXT = "text"
    NUMBER = "number"
    DATETIME = "datetime"
    BINARY = "binary"


@dataclass(frozen=True)
class ActionNameJoin:
    """Marks a dimension whose id resolves to a name through log_action.

    The join is always log_action.idaction = <owner_table>.<owner_column>.
    """

    table: str = ACTION_TABLE
    column: str = "idaction"
    name_column: str = "name"


class Dimension:
    """Base class for column dimensions.

    Subclasses set the class attributes and override format_value() when
    the raw database value needs a human-readable representation.

    Example:
        class VisitorIdDimension(Dimension):
            owner_table = "log_visit"
            owner_column = "idvisitor"
            type = DimensionType.BINARY
    """

    owner_table: str | None = None
    owner_column: str | None = None
    type: DimensionType = DimensionType.TEXT
    join: ActionNameJoin | None = None

    @property
    def is_binary(self) -> bool:
        return self.type == DimensionType.BINARY

    @property
    def is_action_name_lookup(self) -> bool:
        return isinstance(self.join, ActionNameJoin)

    def format_value(self, value: Any, site_id: Any) -> Any:
        """Return the exported representation of a raw column value.

        Args:
            value: Raw value from the row (already hex-encoded for binary columns)
            site_id: idsite of the row the value belongs to
        """
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.owner_table}.{self.owner_column})"
