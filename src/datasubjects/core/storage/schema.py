# src/datasubjects/core/storage/schema.py
"""SQLAlchemy table definitions for the core log tables, plus reflection helpers.

Uses SQLAlchemy Core (not ORM). Core tables are defined per table prefix
because the same logical schema is deployed under installation-specific
prefixes. Tables contributed by plugins are not defined here; their columns
are discovered by reflection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import (
    BINARY,
    VARBINARY,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)
from sqlalchemy.exc import CompileError

from datasubjects.contracts import (
    ACTION_TABLE,
    ACTION_URL_COLUMN,
    LINK_VISIT_ACTION_TABLE,
    SITE_ID_COLUMN,
    VISIT_ID_COLUMN,
    VISIT_TABLE,
)

if TYPE_CHECKING:
    from datasubjects.core.storage.database import SubjectDB

# Columns the engine filters and joins on. Validated by SubjectDB.validate_schema().
REQUIRED_ANCHOR_COLUMNS: dict[str, tuple[str, ...]] = {
    VISIT_TABLE: (SITE_ID_COLUMN, VISIT_ID_COLUMN),
    LINK_VISIT_ACTION_TABLE: (SITE_ID_COLUMN, VISIT_ID_COLUMN, ACTION_URL_COLUMN),
}


def physical_name(table_prefix: str, logical_name: str) -> str:
    """Map a logical log table name to its physical name."""
    return f"{table_prefix}{logical_name}"


def build_core_metadata(table_prefix: str = "") -> MetaData:
    """Build MetaData holding the core log tables under ``table_prefix``."""
    metadata = MetaData()

    # === Visits (visit anchor) ===

    Table(
        physical_name(table_prefix, VISIT_TABLE),
        metadata,
        Column("idvisit", Integer, primary_key=True),
        Column("idsite", Integer, nullable=False),
        Column("idvisitor", LargeBinary(8), nullable=False),
        Column("visit_first_action_time", DateTime),
        Column("visit_last_action_time", DateTime),
        Column("config_id", LargeBinary(8)),
        Column("location_ip", LargeBinary(16)),
        Column("location_country", String(3)),
        Column("user_id", String(200)),
        Column("referer_url", Text),
        Column("visit_total_actions", Integer),
        Index(f"{table_prefix}index_idsite_idvisitor", "idsite", "idvisitor"),
    )

    # === Visit/action links (action-link anchor) ===

    Table(
        physical_name(table_prefix, LINK_VISIT_ACTION_TABLE),
        metadata,
        Column("idlink_va", Integer, primary_key=True),
        Column("idsite", Integer, nullable=False),
        Column("idvisitor", LargeBinary(8), nullable=False),
        Column("idvisit", Integer, nullable=False),
        Column("idaction_url", Integer),
        Column("idaction_url_ref", Integer),
        Column("idaction_name", Integer),
        Column("server_time", DateTime),
        Column("time_spent_ref_action", Integer),
        Column("custom_float", Float),
        Index(f"{table_prefix}index_idvisit", "idvisit"),
    )

    # === Action names (shared, reference counted elsewhere) ===

    Table(
        physical_name(table_prefix, ACTION_TABLE),
        metadata,
        Column("idaction", Integer, primary_key=True),
        Column("name", Text),
        Column("hash", Integer, nullable=False),
        Column("type", Integer),
        Column("url_prefix", Integer),
    )

    # === Conversions ===

    Table(
        physical_name(table_prefix, "log_conversion"),
        metadata,
        Column("idvisit", Integer, nullable=False),
        Column("idsite", Integer, nullable=False),
        Column("idvisitor", LargeBinary(8), nullable=False),
        Column("server_time", DateTime, nullable=False),
        Column("idaction_url", Integer),
        Column("idlink_va", Integer),
        Column("idgoal", Integer, nullable=False),
        Column("buster", Integer, nullable=False),
        Column("idorder", String(100)),
        Column("items", Integer),
        Column("url", Text, nullable=False),
        Column("revenue", Float),
        PrimaryKeyConstraint("idvisit", "idgoal", "buster"),
    )

    Table(
        physical_name(table_prefix, "log_conversion_item"),
        metadata,
        Column("idsite", Integer, nullable=False),
        Column("idvisitor", LargeBinary(8), nullable=False),
        Column("server_time", DateTime, nullable=False),
        Column("idvisit", Integer, nullable=False),
        Column("idorder", String(100), nullable=False),
        Column("idaction_sku", Integer, nullable=False),
        Column("idaction_name", Integer, nullable=False),
        Column("idaction_category", Integer, nullable=False),
        Column("price", Float, nullable=False),
        Column("quantity", Integer, nullable=False),
        Column("deleted", Integer, nullable=False),
        PrimaryKeyConstraint("idvisit", "idorder", "idaction_sku"),
    )

    return metadata


def is_binary_column(column: Column[object]) -> bool:
    """True if the column's physical type stores raw bytes."""
    if isinstance(column.type, LargeBinary | BINARY | VARBINARY):
        return True
    try:
        type_name = str(column.type)
    except CompileError:
        # Dialect-specific types without a generic compilation
        type_name = type(column.type).__name__
    return "binary" in type_name.lower()


class TableReflector:
    """Reflect log tables by logical name, caching per instance.

    One reflector serves one erasure or export call. Reflection happens
    before any DELETE is issued, outside the erasure transaction.
    """

    def __init__(self, db: SubjectDB) -> None:
        self._db = db
        self._metadata = MetaData()
        self._cache: dict[str, Table] = {}

    def get(self, logical_name: str) -> Table:
        """Return the reflected table for a logical name.

        Raises:
            sqlalchemy.exc.NoSuchTableError: If the physical table does not exist
        """
        if logical_name not in self._cache:
            with self._db.engine.connect() as conn:
                self._cache[logical_name] = Table(
                    self._db.physical_name(logical_name),
                    self._metadata,
                    autoload_with=conn,
                )
        return self._cache[logical_name]
