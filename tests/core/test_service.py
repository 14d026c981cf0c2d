"""End-to-end tests for DataSubjectService against a seeded SQLite database."""

from __future__ import annotations

import zlib
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from datasubjects.contracts import (
    ACTION_TABLE,
    BridgeCycleError,
    LogTable,
    UnresolvableJoinPathError,
    VisitKey,
)
from datasubjects.core.export import NullDecompressor
from datasubjects.core.storage import SubjectDB
from datasubjects.engine import DataSubjectService, action_name_key
from datasubjects.plugins import PluginManager, hookimpl
from tests.fixtures.catalog import StaticDimensions, make_catalog
from tests.fixtures.database import (
    FORM_TABLES,
    MEDIA_TABLE,
    count_rows,
    create_form_tables,
    create_media_table,
    make_subject_db,
    seed_core_rows,
    seed_form_rows,
)

VISIT_ONE = VisitKey(1, 1)
VISIT_TWO = VisitKey(1, 2)
OTHER_SITE_VISIT = VisitKey(2, 3)

URL_KEY = action_name_key("log_link_visit_action", "idaction_url")
TITLE_KEY = action_name_key("log_link_visit_action", "idaction_name")


class FormTablesPlugin:
    @hookimpl
    def datasubjects_get_log_tables(self) -> list[LogTable]:
        return list(FORM_TABLES)


class OrphanTablePlugin:
    """Registers a table with no path to either anchor."""

    @hookimpl
    def datasubjects_get_log_tables(self) -> list[LogTable]:
        return [LogTable("log_orphan", ways_to_join={"log_missing": "idmissing"})]


class MediaTablePlugin:
    @hookimpl
    def datasubjects_get_log_tables(self) -> list[LogTable]:
        return [MEDIA_TABLE]


class RecordingExtension:
    def __init__(self) -> None:
        self.deleted: list[Sequence[VisitKey]] = []
        self.exported: list[Sequence[VisitKey]] = []

    @hookimpl
    def datasubjects_delete_data_subjects(self, visits: Sequence[VisitKey]) -> dict[str, int]:
        self.deleted.append(list(visits))
        return {"log_heatmap": 7}

    @hookimpl
    def datasubjects_export_data_subjects(self, visits: Sequence[VisitKey]) -> dict[str, Any]:
        self.exported.append(list(visits))
        return {"log_heatmap": [{"idvisit": v.visit_id} for v in visits], "log_visit": "overridden"}


def make_service(db: SubjectDB, manager: PluginManager, **kwargs: Any) -> DataSubjectService:
    return DataSubjectService(
        db,
        manager,
        manager,
        erasure_hook=manager.delete_data_subjects,
        export_hook=manager.export_data_subjects,
        **kwargs,
    )


@pytest.fixture
def manager(plugin_manager: PluginManager) -> PluginManager:
    plugin_manager.register(FormTablesPlugin())
    return plugin_manager


@pytest.fixture
def service(seeded_db: SubjectDB, manager: PluginManager) -> DataSubjectService:
    return make_service(seeded_db, manager)


class TestConstruction:
    def test_rejects_zero_workers(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        with pytest.raises(ValueError, match="max_workers"):
            make_service(seeded_db, manager, max_workers=0)


class TestEmptyVisits:
    def test_delete_nothing(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        assert service.delete_data_subjects([]) == {}
        assert count_rows(seeded_db, "log_visit") == 3

    def test_export_nothing(self, service: DataSubjectService) -> None:
        assert service.export_data_subjects([]) == {}

    def test_hooks_not_called(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        extension = RecordingExtension()
        manager.register(extension)
        service = make_service(seeded_db, manager)

        service.delete_data_subjects([])
        service.export_data_subjects(iter(()))

        assert extension.deleted == []
        assert extension.exported == []


class TestDelete:
    def test_counts_per_table(self, service: DataSubjectService) -> None:
        counts = service.delete_data_subjects([VISIT_ONE])

        assert counts == {
            "log_visit": 1,
            "log_link_visit_action": 2,
            "log_form_field_value": 1,
            "log_form_field": 1,
            "log_form": 1,
            "log_conversion_item": 0,
            "log_conversion": 1,
        }

    def test_keys_reverse_lexicographic(self, service: DataSubjectService) -> None:
        keys = list(service.delete_data_subjects([VISIT_ONE]))
        assert keys == sorted(keys, reverse=True)

    def test_only_matching_rows_removed(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        service.delete_data_subjects([VISIT_ONE])

        assert count_rows(seeded_db, "log_visit") == 2
        assert count_rows(seeded_db, "log_link_visit_action") == 2
        assert count_rows(seeded_db, "log_form") == 1
        assert count_rows(seeded_db, "log_form_field") == 1
        assert count_rows(seeded_db, "log_form_field_value") == 1

    def test_action_names_never_deleted(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        counts = service.delete_data_subjects([VISIT_ONE, VISIT_TWO, OTHER_SITE_VISIT])

        assert ACTION_TABLE not in counts
        assert count_rows(seeded_db, ACTION_TABLE) == 3

    def test_site_is_part_of_identity(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        counts = service.delete_data_subjects([VisitKey(2, 1)])

        assert counts["log_visit"] == 0
        assert count_rows(seeded_db, "log_visit") == 3

    def test_several_visits(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        counts = service.delete_data_subjects([VISIT_ONE, VISIT_TWO])

        assert counts["log_visit"] == 2
        assert counts["log_link_visit_action"] == 3
        assert counts["log_form_field_value"] == 2
        assert count_rows(seeded_db, "log_visit") == 1

    def test_unresolvable_table_deletes_nothing(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        manager.register(OrphanTablePlugin())
        service = make_service(seeded_db, manager)

        with pytest.raises(UnresolvableJoinPathError, match="log_orphan"):
            service.delete_data_subjects([VISIT_ONE])

        assert count_rows(seeded_db, "log_visit") == 3
        assert count_rows(seeded_db, "log_form_field_value") == 2

    def test_unresolvable_table_skips_erasure_hook(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        extension = RecordingExtension()
        manager.register(extension)
        manager.register(OrphanTablePlugin())

        with pytest.raises(UnresolvableJoinPathError):
            make_service(seeded_db, manager).delete_data_subjects([VISIT_ONE])

        assert extension.deleted == []

    def test_bridge_cycle_rejected(self, seeded_db: SubjectDB) -> None:
        catalog = make_catalog(
            LogTable("log_a", visit_join_column="idvisit", ways_to_join={"log_b": "idb"}),
            LogTable("log_b", visit_join_column="idvisit", ways_to_join={"log_a": "ida"}),
        )
        service = DataSubjectService(seeded_db, catalog, StaticDimensions())

        with pytest.raises(BridgeCycleError):
            service.delete_data_subjects([VISIT_ONE])
        assert count_rows(seeded_db, "log_visit") == 3


class TestExport:
    def test_visit_row_normalized(self, service: DataSubjectService) -> None:
        [visit] = service.export_data_subjects([VISIT_ONE])["log_visit"]

        assert visit["idvisit"] == 1
        assert visit["idsite"] == 1
        assert visit["idvisitor"] == "dead"
        assert visit["config_id"] == "0102"
        assert visit["visit_last_action_time"] == "2024-03-01T12:30:00"
        assert visit["referer_url"] == "compressed referrer"

    def test_rows_ordered_by_id_columns(self, service: DataSubjectService) -> None:
        links = service.export_data_subjects([VISIT_ONE])["log_link_visit_action"]
        assert [row["idlink_va"] for row in links] == [10, 11]

    def test_columns_in_name_order(self, service: DataSubjectService) -> None:
        [conversion] = service.export_data_subjects([VISIT_ONE])["log_conversion"]

        assert list(conversion) == sorted(conversion)
        assert conversion["revenue"] == 9.5

    def test_bridged_tables_carry_site(self, service: DataSubjectService) -> None:
        results = service.export_data_subjects([VISIT_ONE])

        assert results["log_form"] == [{"form_name": "signup", "idform": 100, "idsite": 1, "idvisit": 1}]
        assert results["log_form_field"] == [{"field_name": "email", "idform": 100, "idformfield": 200, "idsite": 1}]
        [value] = results["log_form_field_value"]
        assert value["idsite"] == 1
        # binary columns are hex-encoded and never decompressed
        assert value["value"] == zlib.compress(b"person@example.org").hex()

    def test_tables_without_rows_exported_empty(self, service: DataSubjectService) -> None:
        assert service.export_data_subjects([VISIT_ONE])["log_conversion_item"] == []

    def test_action_names(self, service: DataSubjectService) -> None:
        results = service.export_data_subjects([VISIT_ONE])

        assert ACTION_TABLE not in results
        assert results[URL_KEY] == [{"idaction": 1, "name": "https://www.example.org/page"}]
        assert results[TITLE_KEY] == [{"idaction": 2, "name": "Landing page"}]

    def test_action_names_across_visits(self, service: DataSubjectService) -> None:
        results = service.export_data_subjects([VISIT_ONE, VISIT_TWO])

        assert results[URL_KEY] == [
            {"idaction": 1, "name": "https://www.example.org/page"},
            {"idaction": 3, "name": "http://other.org/x"},
        ]

    def test_empty_action_names_left_out(self, service: DataSubjectService) -> None:
        results = service.export_data_subjects([OTHER_SITE_VISIT])

        assert URL_KEY in results
        assert TITLE_KEY not in results

    def test_keys_reverse_lexicographic(self, service: DataSubjectService) -> None:
        keys = list(service.export_data_subjects([VISIT_ONE]))
        assert keys == sorted(keys, reverse=True)

    def test_export_is_read_only(self, service: DataSubjectService, seeded_db: SubjectDB) -> None:
        service.export_data_subjects([VISIT_ONE, VISIT_TWO])
        assert count_rows(seeded_db, "log_visit") == 3

    def test_unresolvable_table_skipped(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        manager.register(OrphanTablePlugin())
        results = make_service(seeded_db, manager).export_data_subjects([VISIT_ONE])

        assert "log_orphan" not in results
        assert len(results["log_visit"]) == 1

    def test_decompression_can_be_disabled(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        service = make_service(seeded_db, manager, decompressor=NullDecompressor())
        [visit] = service.export_data_subjects([VISIT_ONE])["log_visit"]

        assert visit["referer_url"] == zlib.compress(b"compressed referrer")

    def test_bridge_cycle_falls_back_to_name_order(self, seeded_db: SubjectDB) -> None:
        catalog = make_catalog(
            LogTable("log_form", visit_join_column="idvisit", ways_to_join={"log_form_field": "idform"}),
            LogTable("log_form_field", ways_to_join={"log_form": "idform"}),
        )
        service = DataSubjectService(seeded_db, catalog, StaticDimensions())

        results = service.export_data_subjects([VISIT_ONE])

        assert [row["idform"] for row in results["log_form"]] == [100]
        assert [row["idformfield"] for row in results["log_form_field"]] == [200]


class TestRoundTrip:
    def test_nothing_left_after_delete(self, service: DataSubjectService) -> None:
        before = service.export_data_subjects([VISIT_ONE])
        assert before["log_visit"]

        service.delete_data_subjects([VISIT_ONE])
        after = service.export_data_subjects([VISIT_ONE])

        assert all(after[table.name] == [] for table in FORM_TABLES)
        assert after["log_visit"] == []
        assert after["log_link_visit_action"] == []
        assert URL_KEY not in after

    def test_other_visits_untouched(self, service: DataSubjectService) -> None:
        before = service.export_data_subjects([VISIT_TWO])
        service.delete_data_subjects([VISIT_ONE])

        assert service.export_data_subjects([VISIT_TWO]) == before


class TestExtensionHooks:
    def test_erasure_hook_counts_merged(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        extension = RecordingExtension()
        manager.register(extension)

        counts = make_service(seeded_db, manager).delete_data_subjects([VISIT_ONE])

        assert counts["log_heatmap"] == 7
        assert extension.deleted == [[VISIT_ONE]]

    def test_core_counts_win_over_hook(self, seeded_db: SubjectDB) -> None:
        catalog = make_catalog()
        service = DataSubjectService(
            seeded_db,
            catalog,
            StaticDimensions(),
            erasure_hook=lambda visits: {"log_visit": 99},
        )

        assert service.delete_data_subjects([VISIT_ONE])["log_visit"] == 1

    def test_erasure_hook_runs_before_core_deletes(self, seeded_db: SubjectDB) -> None:
        seen: list[int] = []

        def hook(visits: Sequence[VisitKey]) -> dict[str, int]:
            seen.append(count_rows(seeded_db, "log_visit"))
            return {}

        service = DataSubjectService(seeded_db, make_catalog(), StaticDimensions(), erasure_hook=hook)
        service.delete_data_subjects([VISIT_ONE])

        assert seen == [3]
        assert count_rows(seeded_db, "log_visit") == 2

    def test_export_hook_results_replace_keys(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        extension = RecordingExtension()
        manager.register(extension)

        results = make_service(seeded_db, manager).export_data_subjects([VISIT_ONE, VISIT_TWO])

        assert results["log_heatmap"] == [{"idvisit": 1}, {"idvisit": 2}]
        assert results["log_visit"] == "overridden"
        assert extension.exported == [[VISIT_ONE, VISIT_TWO]]


class TestActionJoinedTables:
    """Tables joined through log_link_visit_action.idaction_url."""

    @pytest.fixture
    def media_service(self, seeded_db: SubjectDB, manager: PluginManager) -> DataSubjectService:
        create_media_table(seeded_db)
        manager.register(MediaTablePlugin())
        return make_service(seeded_db, manager)

    def test_export_matches_visit_actions(self, media_service: DataSubjectService) -> None:
        results = media_service.export_data_subjects([VISIT_TWO])

        assert results["log_media"] == [{"idaction": 3, "idmedia": 501, "idsite": 1, "title": "clip"}]

    def test_delete_removes_only_matching_rows(self, media_service: DataSubjectService, seeded_db: SubjectDB) -> None:
        counts = media_service.delete_data_subjects([VISIT_TWO])

        assert counts["log_media"] == 1
        assert count_rows(seeded_db, "log_media") == 1
        assert media_service.export_data_subjects([VISIT_ONE])["log_media"][0]["idmedia"] == 500


class TestWorkerPool:
    @pytest.fixture
    def file_db(self, tmp_path: Path) -> Iterator[SubjectDB]:
        database = make_subject_db(path=tmp_path / "logs.db")
        seed_core_rows(database)
        create_form_tables(database)
        seed_form_rows(database)
        yield database
        database.close()

    def test_parallel_matches_sequential(self, file_db: SubjectDB, manager: PluginManager) -> None:
        visits = [VISIT_ONE, VISIT_TWO, OTHER_SITE_VISIT]

        sequential = make_service(file_db, manager).export_data_subjects(visits)
        parallel = make_service(file_db, manager, max_workers=4).export_data_subjects(visits)

        assert parallel == sequential
        assert list(parallel) == list(sequential)

    def test_parallel_on_in_memory_database(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        """Worker threads must see the same in-memory database as the caller."""
        visits = [VISIT_ONE, VISIT_TWO, OTHER_SITE_VISIT]

        sequential = make_service(seeded_db, manager).export_data_subjects(visits)
        parallel = make_service(seeded_db, manager, max_workers=4).export_data_subjects(visits)

        assert parallel == sequential
        assert len(parallel["log_visit"]) == 3


class TestPlan:
    def test_anchors_last(self, service: DataSubjectService) -> None:
        names = [entry.table.name for entry in service.plan()]
        assert names[-2:] == ["log_link_visit_action", "log_visit"]

    def test_bridged_tables_before_their_bridges(self, service: DataSubjectService) -> None:
        names = [entry.table.name for entry in service.plan()]

        assert names.index("log_form_field_value") < names.index("log_form_field") < names.index("log_form")

    def test_paths_resolved(self, service: DataSubjectService) -> None:
        entries = {entry.table.name: entry for entry in service.plan()}

        value_path = entries["log_form_field_value"].path
        assert value_path is not None
        assert value_path.tables == ("log_form_field_value", "log_form_field", "log_form", "log_visit")
        assert entries[ACTION_TABLE].skipped
        assert not entries["log_visit"].skipped

    def test_unresolvable_entries_reported(self, seeded_db: SubjectDB, manager: PluginManager) -> None:
        manager.register(OrphanTablePlugin())
        entries = {entry.table.name: entry for entry in make_service(seeded_db, manager).plan()}

        orphan = entries["log_orphan"]
        assert orphan.path is None
        assert orphan.error is not None
