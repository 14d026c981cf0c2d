# src/datasubjects/core/storage/query.py
"""Statement assembly from resolved join paths.

Turns a JoinPath plus a set of visit keys into SQLAlchemy Core statements:

- SELECT: the base table LEFT JOINed along the path, filtered on the
  selectable table's (idsite, idvisit), ordered by the base table's id columns.
- DELETE: rows of the base table only. The join chain is expressed as a
  correlated EXISTS so the statement runs on dialects without multi-table
  DELETE (SQLite); a base table that carries idsite/idvisit itself is
  filtered directly.
- Action names: log_action joined to a dimension's owner table and on along
  the owner's path, for the export enrichment pass.

Every physical table is aliased to its logical name, so join conditions read
the same regardless of table prefix.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Delete, Select, and_, delete, literal, or_, select
from sqlalchemy.sql.expression import ColumnElement, FromClause, TableClause

from datasubjects.contracts import (
    SITE_ID_COLUMN,
    VISIT_ID_COLUMN,
    ActionNameJoin,
    JoinPath,
    UnresolvableJoinPathError,
    VisitKey,
)
from datasubjects.core.storage.schema import TableReflector


@dataclass(frozen=True)
class AssembledQuery:
    """FROM clause and visit filter for one join path.

    Attributes:
        path: The join path the query was built from
        from_clause: Base table LEFT JOINed along the path
        predicate: OR of (selectable.idsite = ? AND selectable.idvisit = ?) per visit
        visits: Visits the predicate filters on, in input order
        aliases: Logical table name -> aliased table used in from_clause
    """

    path: JoinPath
    from_clause: FromClause
    predicate: ColumnElement[bool]
    visits: tuple[VisitKey, ...]
    aliases: dict[str, Any]

    @property
    def parameters(self) -> tuple[int, ...]:
        """Bound values in predicate order (site, visit, site, visit, ...)."""
        return tuple(value for visit in self.visits for value in (visit.site_id, visit.visit_id))

    @property
    def target(self) -> Any:
        """Aliased base table."""
        return self.aliases[self.path.base]

    @property
    def selectable(self) -> Any:
        """Aliased table carrying idsite/idvisit."""
        return self.aliases[self.path.selectable]


def _column(table: Any, column_name: str, base: str) -> Any:
    try:
        return table.c[column_name]
    except KeyError:
        raise UnresolvableJoinPathError(base, f"column {table.name}.{column_name} does not exist") from None


def _visit_predicate(selectable: Any, visits: Sequence[VisitKey], base: str) -> ColumnElement[bool]:
    site_column = _column(selectable, SITE_ID_COLUMN, base)
    visit_column = _column(selectable, VISIT_ID_COLUMN, base)
    return or_(*(and_(site_column == visit.site_id, visit_column == visit.visit_id) for visit in visits))


class QueryAssembler:
    """Build SELECT and DELETE statements for resolved join paths."""

    def __init__(self, tables: TableReflector) -> None:
        self._tables = tables

    def _aliases(self, path: JoinPath, extra: Sequence[str] = ()) -> dict[str, Any]:
        names = [*extra, *path.tables]
        if len(set(names)) != len(names):
            raise UnresolvableJoinPathError(path.base, f"join path visits a table twice: {' -> '.join(names)}")
        return {name: self._tables.get(name).alias(name) for name in names}

    def build(self, path: JoinPath, visits: Sequence[VisitKey]) -> AssembledQuery:
        """Assemble the FROM clause and visit filter for a join path.

        Raises:
            ValueError: If visits is empty (callers short-circuit before this)
            UnresolvableJoinPathError: If a join column does not exist
        """
        if not visits:
            raise ValueError("At least one visit is required to build a query")

        aliases = self._aliases(path)
        from_clause: FromClause = aliases[path.base]
        for step in path.steps:
            left = aliases[step.left_table]
            right = aliases[step.table]
            from_clause = from_clause.outerjoin(
                right,
                _column(left, step.left_column, path.base) == _column(right, step.right_column, path.base),
            )

        return AssembledQuery(
            path=path,
            from_clause=from_clause,
            predicate=_visit_predicate(aliases[path.selectable], visits, path.base),
            visits=tuple(visits),
            aliases=aliases,
        )

    def select_statement(self, query: AssembledQuery, id_columns: Sequence[str] = ()) -> Select[Any]:
        """SELECT every column of the base table (name order) plus idsite.

        idsite is taken from the selectable table when the base table has none.
        Rows are ordered by ``id_columns`` ascending.
        """
        target = query.target
        columns: list[Any] = [target.c[name] for name in sorted(target.c.keys())]
        if SITE_ID_COLUMN not in target.c:
            columns.append(_column(query.selectable, SITE_ID_COLUMN, query.path.base).label(SITE_ID_COLUMN))

        stmt = select(*columns).select_from(query.from_clause).where(query.predicate)
        if id_columns:
            stmt = stmt.order_by(*(_column(target, name, query.path.base).asc() for name in id_columns))
        return stmt

    def delete_statement(self, query: AssembledQuery) -> Delete:
        """DELETE rows of the base table reachable through the join path."""
        path = query.path
        base_table: TableClause = self._tables.get(path.base)

        if not path.steps:
            return delete(base_table).where(_visit_predicate(base_table, query.visits, path.base))

        # The base table is referenced unaliased inside EXISTS so it correlates
        # with the DELETE target; every other table keeps its alias.
        scope: dict[str, Any] = {**query.aliases, path.base: base_table}
        conditions = [
            _column(scope[step.left_table], step.left_column, path.base) == _column(scope[step.table], step.right_column, path.base)
            for step in path.steps
        ]
        conditions.append(query.predicate)

        chain_exists = select(literal(1)).where(*conditions).correlate(base_table).exists()
        return delete(base_table).where(chain_exists)

    def action_name_statement(
        self,
        owner_path: JoinPath,
        owner_column: str,
        visits: Sequence[VisitKey],
        join: ActionNameJoin | None = None,
    ) -> Select[Any]:
        """SELECT (idaction, name, url_prefix) for action ids referenced by a dimension column.

        Raises:
            ValueError: If visits is empty
        """
        if not visits:
            raise ValueError("At least one visit is required to build a query")

        join = join or ActionNameJoin()
        aliases = self._aliases(owner_path, extra=(join.table,))
        action = aliases[join.table]
        base = owner_path.base

        from_clause: FromClause = action.outerjoin(
            aliases[base],
            _column(action, join.column, base) == _column(aliases[base], owner_column, base),
        )
        for step in owner_path.steps:
            left = aliases[step.left_table]
            right = aliases[step.table]
            from_clause = from_clause.outerjoin(
                right,
                _column(left, step.left_column, base) == _column(right, step.right_column, base),
            )

        return (
            select(
                _column(action, join.column, base).label("idaction"),
                _column(action, join.name_column, base).label("name"),
                _column(action, "url_prefix", base).label("url_prefix"),
            )
            .select_from(from_clause)
            .where(_visit_predicate(aliases[owner_path.selectable], visits, base))
        )
