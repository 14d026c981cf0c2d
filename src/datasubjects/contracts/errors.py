"""Exceptions raised across subsystem boundaries.

Erasure treats every error here as fatal. Export skips tables whose join
path cannot be resolved and lets everything else propagate.
"""

from __future__ import annotations


class UnresolvableJoinPathError(Exception):
    """Raised when a log table cannot be joined back to an anchor table.

    Attributes:
        table_name: Logical name of the table that could not be resolved
        reason: Human-readable explanation
    """

    def __init__(self, table_name: str, reason: str = "no visit, action or bridge relation leads to an anchor table") -> None:
        self.table_name = table_name
        self.reason = reason
        super().__init__(f"Cannot join table {table_name}: {reason}")


class JoinPathCycleError(UnresolvableJoinPathError):
    """Raised when the bridge search revisits a table already on the search path.

    Attributes:
        cycle: Table names forming the cycle, first entry repeated at the end
    """

    def __init__(self, table_name: str, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(table_name, f"bridge relations form a cycle: {' -> '.join(cycle)}")


class BridgeCycleError(ValueError):
    """Raised when declared bridge relations prevent a safe processing order."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Bridge relations contain a cycle: {' -> '.join(cycle)}")


class UnknownTableError(KeyError):
    """Raised when a table name is not registered in the catalog."""

    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        super().__init__(table_name)

    def __str__(self) -> str:
        return f"Log table not registered: {self.table_name}"


class DuplicateRegistrationError(ValueError):
    """Raised when two plugins register a log table with the same name."""

    pass


class SchemaCompatibilityError(Exception):
    """Raised when the database lacks the anchor tables or their identity columns."""

    pass
