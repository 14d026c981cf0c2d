# src/datasubjects/plugins/builtin/core_tables.py
"""Core log tables and the dimensions defined on them."""

from datetime import date, datetime
from typing import Any

from datasubjects.contracts import (
    ACTION_TABLE,
    LINK_VISIT_ACTION_TABLE,
    VISIT_TABLE,
    ActionNameJoin,
    Dimension,
    DimensionType,
    LogTable,
)
from datasubjects.plugins.hookspecs import hookimpl

CORE_TABLES: tuple[LogTable, ...] = (
    LogTable(VISIT_TABLE, id_columns=("idvisit",), visit_join_column="idvisit"),
    LogTable(LINK_VISIT_ACTION_TABLE, id_columns=("idlink_va",), visit_join_column="idvisit"),
    LogTable(ACTION_TABLE, id_columns=("idaction",), action_join_column="idaction"),
    LogTable("log_conversion", id_columns=("idvisit", "idgoal", "buster"), visit_join_column="idvisit"),
    LogTable("log_conversion_item", id_columns=("idvisit", "idorder", "idaction_sku"), visit_join_column="idvisit"),
)


class VisitorIdDimension(Dimension):
    owner_table = VISIT_TABLE
    owner_column = "idvisitor"
    type = DimensionType.BINARY


class ConfigIdDimension(Dimension):
    owner_table = VISIT_TABLE
    owner_column = "config_id"
    type = DimensionType.BINARY


class LastActionTimeDimension(Dimension):
    """Time of the visit's last action, exported as ISO-8601 text."""

    owner_table = VISIT_TABLE
    owner_column = "visit_last_action_time"
    type = DimensionType.DATETIME

    def format_value(self, value: Any, site_id: Any) -> Any:
        if isinstance(value, datetime | date):
            return value.isoformat()
        return value


class PageUrlDimension(Dimension):
    owner_table = LINK_VISIT_ACTION_TABLE
    owner_column = "idaction_url"
    type = DimensionType.NUMBER
    join = ActionNameJoin()


class PageTitleDimension(Dimension):
    owner_table = LINK_VISIT_ACTION_TABLE
    owner_column = "idaction_name"
    type = DimensionType.NUMBER
    join = ActionNameJoin()


class CoreTablesPlugin:
    """Registers the core log tables and their dimensions."""

    @hookimpl
    def datasubjects_get_log_tables(self) -> list[LogTable]:
        return list(CORE_TABLES)

    @hookimpl
    def datasubjects_get_dimensions(self) -> list[Dimension]:
        return [
            VisitorIdDimension(),
            ConfigIdDimension(),
            LastActionTimeDimension(),
            PageUrlDimension(),
            PageTitleDimension(),
        ]
