# src/datasubjects/core/storage/executor.py
"""Statement execution against the log database."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Connection, Delete, Select

if TYPE_CHECKING:
    from datasubjects.core.storage.database import SubjectDB


class SqlExecutor:
    """Run assembled statements.

    DELETEs run on a caller-supplied connection so every table of one erasure
    shares a single transaction. SELECTs open their own read connection and
    are safe to call from export worker threads.
    """

    def __init__(self, db: SubjectDB) -> None:
        self._db = db

    def delete(self, conn: Connection, stmt: Delete) -> int:
        """Execute a DELETE and return the number of affected rows."""
        result = conn.execute(stmt)
        return result.rowcount

    def select(self, stmt: Select[Any]) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as plain dicts."""
        with self._db.read_connection() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]
