"""Database access for the log tables: connection, schema, statement assembly and execution."""

from datasubjects.core.storage.database import SubjectDB
from datasubjects.core.storage.executor import SqlExecutor
from datasubjects.core.storage.query import AssembledQuery, QueryAssembler
from datasubjects.core.storage.schema import (
    TableReflector,
    build_core_metadata,
    is_binary_column,
    physical_name,
)

__all__ = [
    "AssembledQuery",
    "QueryAssembler",
    "SqlExecutor",
    "SubjectDB",
    "TableReflector",
    "build_core_metadata",
    "is_binary_column",
    "physical_name",
]
