# src/datasubjects/engine/service.py
"""DataSubjectService - erasure and export of everything stored for a set of visits.

Control flow for both operations:

    catalog tables -> ProcessingOrderPlanner -> JoinPathResolver per table
        -> QueryAssembler -> SqlExecutor -> (export) RowTransformer

Erasure is fail-fast and transactional: every join path is resolved and every
statement assembled before the first DELETE, then all core DELETEs run in one
transaction. Export is best-effort: a table that cannot be joined to an anchor
is logged and left out, everything else is exported.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import Delete, Select

from datasubjects.contracts import (
    ACTION_TABLE,
    BridgeCycleError,
    Decompressor,
    Dimension,
    DimensionRegistry,
    ErasureExtensionPoint,
    ExportExtensionPoint,
    ExportRows,
    JoinPath,
    LogTable,
    TableCatalog,
    UnresolvableJoinPathError,
    VisitKey,
)
from datasubjects.core.export import RowTransformer, normalize_action_names
from datasubjects.core.joins import JoinPathResolver, ProcessingOrderPlanner
from datasubjects.core.logging import bind_operation, get_logger
from datasubjects.core.storage import QueryAssembler, SqlExecutor, TableReflector, is_binary_column

if TYPE_CHECKING:
    from datasubjects.core.storage import SubjectDB

logger = get_logger(__name__)


def action_name_key(owner_table: str, owner_column: str) -> str:
    """Result key for action names referenced by ``owner_table.owner_column``."""
    return f"{ACTION_TABLE}_{owner_table}_{owner_column}"


def _sorted_results(results: dict[str, Any]) -> dict[str, Any]:
    return dict(sorted(results.items(), reverse=True))


@dataclass(frozen=True)
class PlanEntry:
    """One table in the erasure processing order.

    Attributes:
        table: The table descriptor
        path: Resolved join path, None if the table cannot be joined
        error: Why the table cannot be joined (None when path is set)
    """

    table: LogTable
    path: JoinPath | None
    error: str | None = None

    @property
    def skipped(self) -> bool:
        """True for tables never erased or exported as a table (log_action)."""
        return self.table.name == ACTION_TABLE


@dataclass(frozen=True)
class _ExportTask:
    table: LogTable
    statement: Select[Any]
    binary_columns: frozenset[str]


class DataSubjectService:
    """Erase or export all log data belonging to a set of visits.

    Args:
        db: Database holding the log tables
        catalog: Source of registered table descriptors
        dimensions: Source of registered column dimensions
        erasure_hook: Called with the visits before core tables are erased
        export_hook: Called with the visits after core tables are exported
        max_workers: Export fan-out; 1 runs table queries sequentially
        decompressor: Decompression capability for exported values

    Example:
        manager = PluginManager()
        manager.register_builtin_plugins()
        service = DataSubjectService(
            db,
            manager,
            manager,
            erasure_hook=manager.delete_data_subjects,
            export_hook=manager.export_data_subjects,
        )
        service.delete_data_subjects([VisitKey(1, 42)])
    """

    def __init__(
        self,
        db: SubjectDB,
        catalog: TableCatalog,
        dimensions: DimensionRegistry,
        *,
        erasure_hook: ErasureExtensionPoint | None = None,
        export_hook: ExportExtensionPoint | None = None,
        max_workers: int = 1,
        decompressor: Decompressor | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._db = db
        self._catalog = catalog
        self._dimensions = dimensions
        self._erasure_hook = erasure_hook
        self._export_hook = export_hook
        self._max_workers = max_workers
        self._decompressor = decompressor
        self._planner = ProcessingOrderPlanner()
        self._executor = SqlExecutor(db)

    # === Erasure ===

    def delete_data_subjects(self, visits: Iterable[VisitKey]) -> dict[str, int]:
        """Delete every row belonging to the given visits from all log tables.

        Returns:
            Affected row counts keyed by table name (plus any keys reported by
            the erasure hook), in reverse-lexicographic key order

        Raises:
            UnresolvableJoinPathError: If any table cannot be joined to an anchor.
                Raised before anything is deleted.
            BridgeCycleError: If declared bridge relations form a cycle
        """
        visit_list = list(visits)
        if not visit_list:
            return {}

        with bind_operation("erasure", len(visit_list)):
            return self._delete(visit_list)

    def _delete(self, visit_list: list[VisitKey]) -> dict[str, int]:
        tables = [t for t in self._planner.order(self._catalog.get_all_tables()) if t.name != ACTION_TABLE]
        logger.info("Erasing data subjects", tables=len(tables))

        resolver = JoinPathResolver(self._catalog)
        assembler = QueryAssembler(TableReflector(self._db))
        statements: list[tuple[str, Delete]] = []
        for table in tables:
            path = resolver.require(table)
            statements.append((table.name, assembler.delete_statement(assembler.build(path, visit_list))))

        results: dict[str, int] = {}
        if self._erasure_hook is not None:
            contributed = self._erasure_hook(visit_list)
            logger.debug("Erasure hook results", keys=sorted(contributed))
            results.update(contributed)

        with self._db.connection() as conn:
            for table_name, stmt in statements:
                results[table_name] = self._executor.delete(conn, stmt)
                logger.debug("Erased table", table=table_name, rows=results[table_name])

        logger.info("Erased data subjects", rows=sum(results.values()))
        return _sorted_results(results)

    # === Export ===

    def export_data_subjects(self, visits: Iterable[VisitKey]) -> dict[str, ExportRows | Any]:
        """Export every row belonging to the given visits from all log tables.

        Tables that cannot be joined to an anchor are left out. Action names
        referenced by action-name dimensions are exported under
        ``log_action_<table>_<column>`` keys.

        Returns:
            Rows keyed by table name (plus enrichment and export-hook keys),
            in reverse-lexicographic key order
        """
        visit_list = list(visits)
        if not visit_list:
            return {}

        with bind_operation("export", len(visit_list)):
            return self._export(visit_list)

    def _export(self, visit_list: list[VisitKey]) -> dict[str, ExportRows | Any]:
        tables = list(reversed(self._export_order()))
        logger.info("Exporting data subjects", tables=len(tables))

        resolver = JoinPathResolver(self._catalog)
        reflector = TableReflector(self._db)
        assembler = QueryAssembler(reflector)
        dimensions = list(self._dimensions.get_all_dimensions())
        transformer = RowTransformer(dimensions, self._decompressor)

        tasks: list[_ExportTask] = []
        for table in tables:
            try:
                path = resolver.require(table)
                query = assembler.build(path, visit_list)
                statement = assembler.select_statement(query, table.id_columns)
            except UnresolvableJoinPathError as exc:
                logger.warning("Skipping table that cannot be joined to a visit", table=table.name, reason=exc.reason)
                continue
            reflected_binary = [column.name for column in reflector.get(table.name).columns if is_binary_column(column)]
            tasks.append(
                _ExportTask(
                    table=table,
                    statement=statement,
                    binary_columns=frozenset(transformer.binary_columns(table.name, reflected_binary)),
                )
            )

        results: dict[str, Any] = {}
        for task, rows in zip(tasks, self._run_selects([task.statement for task in tasks]), strict=True):
            results[task.table.name] = transformer.transform(task.table.name, rows, task.binary_columns)
            logger.debug("Exported table", table=task.table.name, rows=len(rows))

        results.update(self._export_action_names(visit_list, dimensions, resolver, assembler))

        if self._export_hook is not None:
            contributed = self._export_hook(visit_list)
            logger.debug("Export hook results", keys=sorted(contributed))
            results.update(contributed)

        logger.info("Exported data subjects", keys=len(results))
        return _sorted_results(results)

    def _export_order(self) -> list[LogTable]:
        tables = list(self._catalog.get_all_tables())
        try:
            ordered = self._planner.order(tables)
        except BridgeCycleError as exc:
            logger.warning("Bridge relations are cyclic, exporting in name order", cycle=exc.cycle)
            ordered = sorted(tables, key=lambda t: t.name)
        return [t for t in ordered if t.name != ACTION_TABLE]

    def _run_selects(self, statements: Sequence[Select[Any]]) -> list[list[dict[str, Any]]]:
        if self._max_workers == 1 or len(statements) <= 1:
            return [self._executor.select(stmt) for stmt in statements]
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="datasubjects-export") as pool:
            # map() yields in submission order and re-raises the first failure
            return list(pool.map(self._executor.select, statements))

    def _export_action_names(
        self,
        visits: Sequence[VisitKey],
        dimensions: Sequence[Dimension],
        resolver: JoinPathResolver,
        assembler: QueryAssembler,
    ) -> dict[str, ExportRows]:
        results: dict[str, ExportRows] = {}
        for dimension in dimensions:
            if not (dimension.is_action_name_lookup and dimension.owner_table and dimension.owner_column):
                continue
            owner = self._catalog.get_table(dimension.owner_table)
            if owner is None or not owner.visit_join_column:
                continue

            stmt = assembler.action_name_statement(resolver.require(owner), dimension.owner_column, visits, dimension.join)
            rows = normalize_action_names(self._executor.select(stmt))
            if rows:
                results[action_name_key(owner.name, dimension.owner_column)] = rows
        return results

    # === Introspection ===

    def plan(self) -> list[PlanEntry]:
        """Describe the erasure processing order and each table's join path.

        Raises:
            BridgeCycleError: If declared bridge relations form a cycle
        """
        resolver = JoinPathResolver(self._catalog)
        entries: list[PlanEntry] = []
        for table in self._planner.order(self._catalog.get_all_tables()):
            try:
                entries.append(PlanEntry(table=table, path=resolver.require(table)))
            except UnresolvableJoinPathError as exc:
                entries.append(PlanEntry(table=table, path=None, error=exc.reason))
        return entries
