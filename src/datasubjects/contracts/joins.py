"""Resolved join paths from a log table back to an anchor table."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class JoinStep:
    """One LEFT JOIN in a join path.

    Joins ``table`` on ``left_table.left_column = table.right_column``.
    """

    table: str
    left_table: str
    left_column: str
    right_column: str

    def describe(self) -> str:
        return f"LEFT JOIN {self.table} ON {self.left_table}.{self.left_column} = {self.table}.{self.right_column}"


@dataclass(frozen=True)
class JoinPath:
    """Chain of joins connecting a base table to an anchor.

    Attributes:
        base: Logical name of the table being erased or exported
        steps: Joins in the order they appear in the FROM clause
        selectable: Table in the chain that carries idsite/idvisit
    """

    base: str
    steps: tuple[JoinStep, ...]
    selectable: str

    @property
    def tables(self) -> tuple[str, ...]:
        """All tables in FROM-clause order, base first."""
        return (self.base, *(step.table for step in self.steps))

    def describe(self) -> str:
        lines = [self.base, *(f"  {step.describe()}" for step in self.steps)]
        lines.append(f"  -> filter on {self.selectable}")
        return "\n".join(lines)
