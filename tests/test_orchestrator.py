import json

import pytest

from pomigrate.exceptions import ConfigurationError, ConnectivityError
from pomigrate.extractors.json_extractor import JSONExtractor
from pomigrate.models.migration import ImportConfig, ImportStage, StageStatus
from pomigrate.orchestrator import ImportOrchestrator
from pomigrate.services.reference_data import DEPARTMENT_SET

from conftest import column_values, table_by_name


@pytest.fixture
def orchestrator(config, loader, recorder):
    return ImportOrchestrator(config, loader=loader, progress=recorder)


def stage_statuses(result):
    return {s.stage: s.status for s in result.stages}


class TestFullImport:
    def test_imports_everything(self, orchestrator, loader, export_file):
        result = orchestrator.run_import(str(export_file))

        assert result.success
        assert result.stage == ImportStage.DONE
        assert result.container_name == "Website Redesign"
        assert result.tasks_imported == 4
        assert result.resources_imported == 3
        assert result.assignments_imported == 5
        assert result.errors == []

        tasks = table_by_name(loader, "Website Redesign - Tasks")
        assert column_values(tasks, "Predecessors") == [None, None, "2FS+2d", "1FS"]
        assert tasks.find_column("Assigned To") is not None

    def test_departments_discovered_into_reference_set(self, orchestrator, loader, export_file):
        orchestrator.run_import(str(export_file))

        assert column_values(table_by_name(loader, DEPARTMENT_SET), "Name") == ["Engineering"]

    def test_rerun_is_idempotent(self, config, loader, export_file):
        ImportOrchestrator(config, loader=loader).run_import(str(export_file))
        snapshot = {
            t.id: [(r.id, r.parent_id, dict(r.cells)) for r in t.rows] for t in loader.tables.values()
        }
        containers = dict(loader.containers)

        result = ImportOrchestrator(config, loader=loader).run_import(str(export_file))

        assert result.success
        assert result.tasks_imported == 0
        assert result.get_stage(ImportStage.TASK_IMPORT).rows_skipped == 4
        assert result.get_stage(ImportStage.RESOURCE_IMPORT).rows_skipped == 3
        assert result.get_stage(ImportStage.ASSIGNMENT_CONFIG).rows_updated == 0
        assert loader.containers.keys() == containers.keys()
        assert {
            t.id: [(r.id, r.parent_id, dict(r.cells)) for r in t.rows] for t in loader.tables.values()
        } == snapshot

    def test_progress_reported_for_every_transition(self, orchestrator, recorder, export_file):
        orchestrator.run_import(str(export_file))

        assert recorder.stage_names == [
            "Init", "ReferenceSetup", "ContainerCreation", "SummaryConfig", "TaskImport",
            "TaskConfig", "ResourceImport", "AssignmentConfig", "Done",
        ]
        assert recorder.events[-1].units_done == recorder.events[-1].units_total == 7

    def test_report_written(self, orchestrator, config, export_file, tmp_path):
        result = orchestrator.run_import(str(export_file))

        reports = list((tmp_path / "output" / "logs").glob("import_report_*.json"))
        assert len(reports) == 1
        assert json.loads(reports[0].read_text())["id"] == result.id

    def test_record_issues_reported_on_success(self, orchestrator, export_data, tmp_path):
        export_data["tasks"].append({"Id": "t-bad", "TaskName": "Broken", "Duration": "forever"})
        export_data["assignments"].append({"Id": "a-9", "TaskId": "t-bad", "ResourceId": "r-1"})
        path = tmp_path / "issues.json"
        path.write_text(json.dumps(export_data))

        result = orchestrator.run_import(str(path))

        assert result.success
        assert result.tasks_imported == 4
        assert any("t-bad" in e for e in result.errors)
        assert any("a-9" in w for w in result.warnings)


class TestSkips:
    def test_no_tasks_skips_task_stages(self, orchestrator, export_data, tmp_path):
        export_data["tasks"] = []
        export_data["assignments"] = []
        path = tmp_path / "no-tasks.json"
        path.write_text(json.dumps(export_data))

        result = orchestrator.run_import(str(path))
        statuses = stage_statuses(result)

        assert result.success
        assert statuses[ImportStage.TASK_IMPORT] == StageStatus.SKIPPED
        assert statuses[ImportStage.TASK_CONFIG] == StageStatus.SKIPPED
        assert statuses[ImportStage.RESOURCE_IMPORT] == StageStatus.COMPLETED
        assert statuses[ImportStage.ASSIGNMENT_CONFIG] == StageStatus.SKIPPED

    def test_no_resources_skips_resource_and_assignment_stages(self, orchestrator, export_data, tmp_path):
        export_data["resources"] = []
        path = tmp_path / "no-resources.json"
        path.write_text(json.dumps(export_data))

        result = orchestrator.run_import(str(path))
        statuses = stage_statuses(result)

        assert result.success
        assert statuses[ImportStage.RESOURCE_IMPORT] == StageStatus.SKIPPED
        assert statuses[ImportStage.ASSIGNMENT_CONFIG] == StageStatus.SKIPPED
        assert result.assignments_imported == 0


class TestFailures:
    def test_bad_reference_workspace_raises(self, loader, export_file, tmp_path):
        config = ImportConfig(pmo_standards_workspace_id=123, output_dir=str(tmp_path))
        orchestrator = ImportOrchestrator(config, loader=loader)

        with pytest.raises(ConfigurationError):
            orchestrator.run_import(str(export_file))
        assert orchestrator.result.stage == ImportStage.FAILED
        assert loader.containers == {}

    def test_later_stage_failure_becomes_failed_result(self, orchestrator, loader, export_file, monkeypatch):
        def broken(*args, **kwargs):
            raise ConnectivityError("Smartsheet unavailable (HTTP 503)")

        monkeypatch.setattr(loader, "update_rows", broken)

        result = orchestrator.run_import(str(export_file))

        assert not result.success
        assert result.stage == ImportStage.FAILED
        assert any("TaskImport" in e and "503" in e for e in result.errors)
        assert stage_statuses(result)[ImportStage.TASK_IMPORT] == StageStatus.FAILED
        assert result.get_stage(ImportStage.RESOURCE_IMPORT) is None
        # Rows written before the failure stay in place
        assert len(table_by_name(loader, "Website Redesign - Tasks").rows) == 4

    def test_failed_run_recovers_on_rerun(self, config, loader, export_file, monkeypatch):
        calls = {"n": 0}
        original = loader.update_rows

        def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConnectivityError("timeout")
            return original(*args, **kwargs)

        monkeypatch.setattr(loader, "update_rows", flaky)

        first = ImportOrchestrator(config, loader=loader).run_import(str(export_file))
        second = ImportOrchestrator(config, loader=loader).run_import(str(export_file))

        assert not first.success
        assert second.success
        tasks = table_by_name(loader, "Website Redesign - Tasks")
        assert len(tasks.rows) == 4
        assert column_values(tasks, "Predecessors") == [None, None, "2FS+2d", "1FS"]

    def test_invalid_project_fails_without_writes(self, orchestrator, loader, export_data, tmp_path):
        del export_data["project"]["Name"]
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(export_data))

        result = orchestrator.run_import(str(path))

        assert not result.success
        assert result.stage == ImportStage.FAILED
        assert loader.containers == {}

    def test_missing_export_file_raises(self, orchestrator, tmp_path):
        with pytest.raises(ConfigurationError):
            orchestrator.run_import(str(tmp_path / "missing.json"))


class TestDryRun:
    def test_dry_run_uses_sandbox(self, export_file, tmp_path):
        config = ImportConfig(pmo_standards_workspace_id=123, template_workspace_id=456)
        orchestrator = ImportOrchestrator(config)

        result = orchestrator.run_import(str(export_file), destination_ref=789, dry_run=True)

        assert result.success
        assert result.dry_run
        assert result.tasks_imported == 4

    def test_live_run_without_token_is_a_configuration_error(self, export_file):
        orchestrator = ImportOrchestrator(ImportConfig())

        with pytest.raises(ConfigurationError):
            orchestrator.run_import(str(export_file), dry_run=False)


class TestValidateSource:
    def test_existing_export_is_valid(self, orchestrator, export_file):
        assert orchestrator.validate_source(str(export_file)).valid

    def test_missing_export(self, orchestrator, tmp_path):
        validation = orchestrator.validate_source(str(tmp_path / "nope.json"))

        assert not validation.valid
        assert "not found" in validation.errors[0]

    def test_garbage_source(self, orchestrator):
        validation = orchestrator.validate_source("project-42")

        assert not validation.valid

    def test_guid_needs_project_online_settings(self, orchestrator):
        validation = orchestrator.validate_source("2f7a8c1e-4b3d-4e5f-9a0b-1c2d3e4f5a6b")

        assert not validation.valid
        assert "PROJECT_ONLINE_URL is not set" in validation.errors
        assert "PROJECT_ONLINE_ACCESS_TOKEN is not set" in validation.errors

    def test_guid_probes_connection(self, loader, recorder):
        class FakeExtractor(JSONExtractor):
            def test_connection(self):
                return False

        config = ImportConfig(
            dry_run=True,
            project_online_url="https://contoso.sharepoint.com/sites/pwa",
            project_online_access_token="token",
        )
        orchestrator = ImportOrchestrator(config, loader=loader, extractor=FakeExtractor())

        validation = orchestrator.validate_source("2f7a8c1e-4b3d-4e5f-9a0b-1c2d3e4f5a6b")

        assert validation.errors == ["Could not connect to Project Online"]
