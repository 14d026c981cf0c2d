# src/datasubjects/contracts/tables.py
"""Log table descriptors and the fixed anchor tables.

A LogTable describes one registered table and how it joins to the rest of the
log schema. Descriptors are supplied by plugins through the TableCatalog and
are immutable for the duration of one erasure or export call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Visit anchor: carries the canonical (idsite, idvisit) identity
VISIT_TABLE = "log_visit"

# Visit-action-link anchor: joinable to the visit anchor, referenced by idaction_url
LINK_VISIT_ACTION_TABLE = "log_link_visit_action"

# Shared action-name lookup table. Never erased directly; exported through
# the action-name enrichment pass.
ACTION_TABLE = "log_action"

SITE_ID_COLUMN = "idsite"
VISIT_ID_COLUMN = "idvisit"
ACTION_URL_COLUMN = "idaction_url"

ANCHOR_TABLES: frozenset[str] = frozenset({VISIT_TABLE, LINK_VISIT_ACTION_TABLE})


@dataclass(frozen=True)
class LogTable:
    """Descriptor for one registered log table.

    Attributes:
        name: Logical table name, unique across the catalog
        id_columns: Columns used to order exported rows (may be empty)
        visit_join_column: Column equal to log_visit.idvisit, if any
        action_join_column: Column equal to log_link_visit_action.idaction_url, if any
        ways_to_join: Bridge relations, other table name -> shared column name.
            Iteration order is the priority order tried during resolution.
    """

    name: str
    id_columns: tuple[str, ...] = ()
    visit_join_column: str | None = None
    action_join_column: str | None = None
    ways_to_join: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("LogTable name must not be empty")
        # Freeze inputs so a descriptor cannot change mid-operation
        object.__setattr__(self, "id_columns", tuple(self.id_columns))
        object.__setattr__(self, "ways_to_join", MappingProxyType(dict(self.ways_to_join)))

    @property
    def is_anchor(self) -> bool:
        """True for log_visit and log_link_visit_action."""
        return self.name in ANCHOR_TABLES

    @property
    def has_bridges(self) -> bool:
        """True if the table declares at least one bridge relation."""
        return len(self.ways_to_join) > 0
