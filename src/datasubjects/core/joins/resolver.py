# src/datasubjects/core/joins/resolver.py
"""Join path resolution from any log table back to an anchor table.

Resolution rules, in priority order:
1. A table with a visit join column joins log_visit directly.
2. A table with an action join column joins log_link_visit_action directly.
3. Otherwise each declared bridge is resolved recursively, in declaration
   order. The first bridge that resolves wins and its chain is spliced after
   the bridge join.

The search carries the current path so a cyclic bridge declaration fails
with JoinPathCycleError instead of recursing without bound.
"""

from __future__ import annotations

from datasubjects.contracts import (
    ACTION_URL_COLUMN,
    LINK_VISIT_ACTION_TABLE,
    VISIT_ID_COLUMN,
    VISIT_TABLE,
    JoinPath,
    JoinPathCycleError,
    JoinStep,
    LogTable,
    TableCatalog,
    UnknownTableError,
    UnresolvableJoinPathError,
)
from datasubjects.core.logging import get_logger

logger = get_logger(__name__)


class JoinPathResolver:
    """Resolve log tables to join paths against one catalog snapshot.

    Results are memoized per table name, so one resolver should live no
    longer than the erasure or export call it serves.

    Usage:
        resolver = JoinPathResolver(catalog)
        path = resolver.resolve(catalog.get_table("log_form_field"))
        if path is None:
            ...  # table cannot reach an anchor
    """

    def __init__(self, catalog: TableCatalog) -> None:
        self._catalog = catalog
        self._cache: dict[str, JoinPath | None] = {}

    def resolve(self, table: LogTable) -> JoinPath | None:
        """Resolve a table to its join path.

        Returns:
            The join path, or None if no rule connects the table to an anchor

        Raises:
            JoinPathCycleError: If the bridge search runs into a cycle
        """
        return self._resolve(table, ())

    def require(self, table: LogTable) -> JoinPath:
        """Resolve a table, raising if it cannot be joined.

        Raises:
            UnresolvableJoinPathError: If no join path exists (JoinPathCycleError for cycles)
        """
        path = self.resolve(table)
        if path is None:
            raise UnresolvableJoinPathError(table.name)
        return path

    def resolve_by_name(self, name: str) -> JoinPath | None:
        """Look up a table in the catalog and resolve it.

        Raises:
            UnknownTableError: If the catalog has no table with that name
        """
        table = self._catalog.get_table(name)
        if table is None:
            raise UnknownTableError(name)
        return self.resolve(table)

    def _resolve(self, table: LogTable, visiting: tuple[str, ...]) -> JoinPath | None:
        if table.name in self._cache:
            return self._cache[table.name]

        if table.visit_join_column:
            path: JoinPath | None = self._direct_path(table, VISIT_TABLE, table.visit_join_column, VISIT_ID_COLUMN)
        elif table.action_join_column:
            path = self._direct_path(table, LINK_VISIT_ACTION_TABLE, table.action_join_column, ACTION_URL_COLUMN)
        else:
            path = self._join_through_bridges(table, (*visiting, table.name))

        self._cache[table.name] = path
        return path

    @staticmethod
    def _direct_path(table: LogTable, anchor: str, column: str, anchor_column: str) -> JoinPath:
        if table.name == anchor:
            return JoinPath(base=table.name, steps=(), selectable=anchor)
        step = JoinStep(table=anchor, left_table=table.name, left_column=column, right_column=anchor_column)
        return JoinPath(base=table.name, steps=(step,), selectable=anchor)

    def _join_through_bridges(self, table: LogTable, visiting: tuple[str, ...]) -> JoinPath | None:
        for bridge_name, column in table.ways_to_join.items():
            if bridge_name in visiting:
                cycle = [*visiting[visiting.index(bridge_name) :], bridge_name]
                raise JoinPathCycleError(visiting[0], cycle)

            bridge = self._catalog.get_table(bridge_name)
            if bridge is None:
                logger.debug("Skipping unregistered bridge table", table=table.name, bridge=bridge_name)
                continue

            bridge_path = self._resolve(bridge, visiting)
            if bridge_path is None:
                continue

            first = JoinStep(table=bridge.name, left_table=table.name, left_column=column, right_column=column)
            return JoinPath(
                base=table.name,
                steps=(first, *bridge_path.steps),
                selectable=bridge_path.selectable,
            )

        return None
