# src/datasubjects/plugins/manager.py
"""Plugin manager for log table registration and extension hooks.

Uses pluggy for hook-based plugin registration. The manager implements the
TableCatalog and DimensionRegistry protocols and exposes both extension
points, so one instance can be handed to DataSubjectService for all four
collaborators.
"""

from collections.abc import Sequence
from typing import Any

import pluggy

from datasubjects.contracts import (
    Dimension,
    DuplicateRegistrationError,
    LogTable,
    UnknownTableError,
    VisitKey,
)
from datasubjects.core.logging import get_logger
from datasubjects.plugins.hookspecs import (
    PROJECT_NAME,
    DataSubjectsExtensionSpec,
    DataSubjectsTableSpec,
)

logger = get_logger(__name__)


class PluginManager:
    """Manages plugin registration and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()
        manager.register(MyPlugin())

        tables = manager.get_all_tables()
        form_table = manager.get_table("log_form")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)

        # Register hookspecs
        self._pm.add_hookspecs(DataSubjectsTableSpec)
        self._pm.add_hookspecs(DataSubjectsExtensionSpec)

        # Caches - map name to descriptor for duplicate detection
        self._tables: dict[str, LogTable] = {}
        self._dimensions: list[Dimension] = []

    def register_builtin_plugins(self) -> None:
        """Register the core log tables and dimensions.

        Call this once at startup, before registering third-party plugins.
        """
        from datasubjects.plugins.builtin.core_tables import CoreTablesPlugin

        self.register(CoreTablesPlugin())

    def load_entrypoint_plugins(self) -> int:
        """Register plugins installed under the ``datasubjects`` entry point group.

        Returns:
            Number of plugins loaded

        Raises:
            DuplicateRegistrationError: If an installed plugin registers a table
                name that is already registered
        """
        count = self._pm.load_setuptools_entrypoints(PROJECT_NAME)
        if count:
            self._refresh_caches()
            logger.debug("Loaded entry point plugins", count=count)
        return count

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods

        Raises:
            DuplicateRegistrationError: If the plugin registers a table name that
                is already registered. The plugin is unregistered again.
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except DuplicateRegistrationError:
            self._pm.unregister(plugin)
            self._refresh_caches()
            raise
        logger.debug("Registered plugin", plugin=type(plugin).__name__, tables=len(self._tables))

    def _refresh_caches(self) -> None:
        """Refresh table and dimension caches from hooks.

        Raises:
            DuplicateRegistrationError: If two plugins register the same table name
        """
        new_tables: dict[str, LogTable] = {}
        new_dimensions: list[Dimension] = []

        # pluggy returns results last-registered first
        for tables in reversed(self._pm.hook.datasubjects_get_log_tables()):
            for table in tables:
                if table.name in new_tables:
                    raise DuplicateRegistrationError(f"Duplicate log table name: '{table.name}'")
                new_tables[table.name] = table

        for dimensions in reversed(self._pm.hook.datasubjects_get_dimensions()):
            new_dimensions.extend(dimensions)

        self._tables = new_tables
        self._dimensions = new_dimensions

    # === TableCatalog ===

    def get_all_tables(self) -> list[LogTable]:
        """Get all registered log tables, in registration order."""
        return list(self._tables.values())

    def get_table(self, name: str) -> LogTable | None:
        """Get a log table by name, or None if not registered."""
        return self._tables.get(name)

    def require_table(self, name: str) -> LogTable:
        """Get a log table by name.

        Raises:
            UnknownTableError: If no table with that name is registered
        """
        table = self._tables.get(name)
        if table is None:
            raise UnknownTableError(name)
        return table

    # === DimensionRegistry ===

    def get_all_dimensions(self) -> list[Dimension]:
        """Get all registered dimensions."""
        return list(self._dimensions)

    # === Extension points ===

    def delete_data_subjects(self, visits: Sequence[VisitKey]) -> dict[str, int]:
        """Run every plugin's erasure hook and merge the reported counts."""
        merged: dict[str, int] = {}
        for result in reversed(self._pm.hook.datasubjects_delete_data_subjects(visits=visits)):
            merged.update(result)
        return merged

    def export_data_subjects(self, visits: Sequence[VisitKey]) -> dict[str, Any]:
        """Run every plugin's export hook and merge the results (later plugins win)."""
        merged: dict[str, Any] = {}
        for result in reversed(self._pm.hook.datasubjects_export_data_subjects(visits=visits)):
            merged.update(result)
        return merged
