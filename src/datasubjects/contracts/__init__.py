"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes live in datasubjects.core.config.

Import patterns:
    from datasubjects.contracts import LogTable, VisitKey, JoinPath
    from datasubjects.core.config import DataSubjectsSettings
"""

from datasubjects.contracts.dimensions import ActionNameJoin, Dimension, DimensionType
from datasubjects.contracts.errors import (
    BridgeCycleError,
    DuplicateRegistrationError,
    JoinPathCycleError,
    SchemaCompatibilityError,
    UnknownTableError,
    UnresolvableJoinPathError,
)
from datasubjects.contracts.joins import JoinPath, JoinStep
from datasubjects.contracts.protocols import (
    Decompressor,
    DimensionRegistry,
    ErasureExtensionPoint,
    ExportExtensionPoint,
    ExportRows,
    TableCatalog,
)
from datasubjects.contracts.tables import (
    ACTION_TABLE,
    ACTION_URL_COLUMN,
    ANCHOR_TABLES,
    LINK_VISIT_ACTION_TABLE,
    SITE_ID_COLUMN,
    VISIT_ID_COLUMN,
    VISIT_TABLE,
    LogTable,
)
from datasubjects.contracts.visits import VisitKey

__all__ = [
    "ACTION_TABLE",
    "ACTION_URL_COLUMN",
    "ANCHOR_TABLES",
    "LINK_VISIT_ACTION_TABLE",
    "SITE_ID_COLUMN",
    "VISIT_ID_COLUMN",
    "VISIT_TABLE",
    "ActionNameJoin",
    "BridgeCycleError",
    "Decompressor",
    "Dimension",
    "DimensionRegistry",
    "DimensionType",
    "DuplicateRegistrationError",
    "ErasureExtensionPoint",
    "ExportExtensionPoint",
    "ExportRows",
    "JoinPath",
    "JoinPathCycleError",
    "JoinStep",
    "LogTable",
    "SchemaCompatibilityError",
    "TableCatalog",
    "UnknownTableError",
    "UnresolvableJoinPathError",
    "VisitKey",
]
