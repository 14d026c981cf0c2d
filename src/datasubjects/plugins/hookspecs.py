# src/datasubjects/plugins/hookspecs.py
"""pluggy hook specifications for datasubjects plugins.

Plugins implement these hooks to contribute log tables, column dimensions,
or their own erasure/export results for data they store outside the log
tables.

Usage (implementing a plugin):
    from datasubjects.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def datasubjects_get_log_tables(self):
            return [LogTable("log_form", visit_join_column="idvisit")]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import pluggy

if TYPE_CHECKING:
    from datasubjects.contracts import Dimension, LogTable, VisitKey

# Project name for pluggy
PROJECT_NAME = "datasubjects"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class DataSubjectsTableSpec:
    """Hook specifications for log table and dimension registration."""

    @hookspec
    def datasubjects_get_log_tables(self) -> list["LogTable"]:  # type: ignore[empty-body]
        """Return log table descriptors.

        Returns:
            List of LogTable descriptors; names must be unique across plugins
        """

    @hookspec
    def datasubjects_get_dimensions(self) -> list["Dimension"]:  # type: ignore[empty-body]
        """Return column dimensions.

        Returns:
            List of Dimension instances
        """


class DataSubjectsExtensionSpec:
    """Hook specifications for data a plugin erases or exports itself."""

    @hookspec
    def datasubjects_delete_data_subjects(self, visits: Sequence["VisitKey"]) -> dict[str, int] | None:
        """Erase plugin-owned data for the visits.

        Called once per erasure, after every join path resolves and before any
        core DELETE runs.

        Returns:
            Deleted counts keyed by a name of the plugin's choosing, or None
        """

    @hookspec
    def datasubjects_export_data_subjects(self, visits: Sequence["VisitKey"]) -> dict[str, Any] | None:
        """Export plugin-owned data for the visits.

        Called once per export, after the log tables are processed. Returned
        keys replace existing keys in the export.

        Returns:
            Exported data keyed by a name of the plugin's choosing, or None
        """
