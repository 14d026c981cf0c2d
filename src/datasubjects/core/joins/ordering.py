# src/datasubjects/core/joins/ordering.py
"""Processing order for destructive operations across all log tables.

Deleting rows from a bridge table destroys the join path of every table that
bridges through it. The planner builds a directed graph with an edge
A -> B whenever A declares B as a bridge (A must be erased while B still
exists), pins log_link_visit_action and then log_visit as the last two
tables, and topologically sorts the result.

Ties between unrelated tables are broken deterministically: tables that
declare bridges come first, then by name.
"""

from __future__ import annotations

from collections.abc import Sequence

import networkx as nx

from datasubjects.contracts import (
    LINK_VISIT_ACTION_TABLE,
    VISIT_TABLE,
    BridgeCycleError,
    LogTable,
)


class ProcessingOrderPlanner:
    """Compute a safe erasure order over registered tables."""

    def build_graph(self, tables: Sequence[LogTable]) -> nx.DiGraph[str]:
        """Build the precedence graph (edge u -> v means u is processed before v).

        Bridges declared by the anchors themselves are ignored: the anchors
        are always processed last. Bridges to tables outside ``tables`` are
        ignored as well.
        """
        names = {table.name for table in tables}
        graph: nx.DiGraph[str] = nx.DiGraph()
        graph.add_nodes_from(names)

        for table in tables:
            if table.is_anchor:
                continue
            for bridge_name in table.ways_to_join:
                if bridge_name in names:
                    graph.add_edge(table.name, bridge_name)
            for anchor in (LINK_VISIT_ACTION_TABLE, VISIT_TABLE):
                if anchor in names:
                    graph.add_edge(table.name, anchor)

        if LINK_VISIT_ACTION_TABLE in names and VISIT_TABLE in names:
            graph.add_edge(LINK_VISIT_ACTION_TABLE, VISIT_TABLE)

        return graph

    def order(self, tables: Sequence[LogTable]) -> list[LogTable]:
        """Return tables in erasure order.

        Raises:
            BridgeCycleError: If declared bridge relations form a cycle
        """
        by_name = {table.name: table for table in tables}
        graph = self.build_graph(tables)

        def priority(name: str) -> tuple[int, str]:
            return (0 if by_name[name].has_bridges else 1, name)

        try:
            ordered = list(nx.lexicographical_topological_sort(graph, key=priority))
        except nx.NetworkXUnfeasible:
            cycle_edges = nx.find_cycle(graph)
            cycle = [edge[0] for edge in cycle_edges]
            cycle.append(cycle[0])
            raise BridgeCycleError(cycle) from None

        return [by_name[name] for name in ordered]
