"""
Tests for the project migration orchestrator.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import Mock, call

import pytest

from conftest import (
    DONE_OPTION_ID,
    NEW_PROJECT_ID,
    NEW_PROJECT_NUMBER,
    STATUS_FIELD_ID,
    target_fields_payload,
    write_json,
)
from github_project_migrator import GhCommandError, MigrationConfig, MigrationError, PreconditionError, ProjectMigrator
from github_project_migrator.fields import FIELDS_TO_IGNORE
from github_project_migrator.models import FieldOutcome, ProjectSnapshot, ProjectState, UpdateKind


def _config(import_dir: Path, mapping_file: Path, **overrides: object) -> MigrationConfig:
    return MigrationConfig(
        target_org="orgB",
        import_path=import_dir,
        mapping_file=mapping_file,
        **overrides,  # type: ignore[arg-type]
    )


def _gh_error(stderr: str = "boom") -> GhCommandError:
    return GhCommandError(["gh", "project"], 1, stderr)


@pytest.mark.unit
class TestEndToEnd:
    """One project, one item, a Status field and a repoA -> repoB mapping."""

    def test_expected_calls(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.copy_project.assert_called_once_with(5, "orgA", "orgB", "Sprint Board")
        mock_target.fetch_fields.assert_called_once_with("orgB", NEW_PROJECT_NUMBER)
        mock_target.add_item.assert_called_once_with(
            NEW_PROJECT_NUMBER, "orgB", "https://github.com/orgB/repoB/issues/3"
        )
        mock_target.update_item_field.assert_called_once_with(
            "PVTI_new1", STATUS_FIELD_ID, NEW_PROJECT_ID, UpdateKind.SINGLE_SELECT_OPTION_ID, DONE_OPTION_ID
        )

        assert len(results) == 1
        result = results[0]
        assert result.state is ProjectState.COMPLETED
        assert result.new_project_number == NEW_PROJECT_NUMBER
        assert result.new_project_id == NEW_PROJECT_ID
        assert result.items[0].item_url == "https://github.com/orgB/repoB/issues/3"
        assert result.items[0].added
        assert result.items[0].field_outcomes == {"Status": FieldOutcome.APPLIED}
        assert result.errors == []

    def test_artifacts_are_persisted(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        copy_output = json.loads((import_dir / "project_5_copy_output.json").read_text())
        assert copy_output["number"] == NEW_PROJECT_NUMBER
        assert json.loads((import_dir / "project_5_target_fields.json").read_text()) == target_fields_payload()

        result = json.loads((import_dir / "project_5_migration_result.json").read_text())
        assert result["state"] == "completed"
        assert result["newProjectId"] == NEW_PROJECT_ID
        assert result["items"][0]["fieldOutcomes"] == {"Status": "applied"}

    def test_ignored_fields_never_updated(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        nodes = [
            {"__typename": "ProjectV2Field", "id": f"F_{name}", "name": name, "dataType": "TEXT"}
            for name in sorted(FIELDS_TO_IGNORE)
        ]
        mock_target.fetch_fields.return_value = {"data": {"organization": {"projectV2": {"fields": {"nodes": nodes}}}}}
        write_json(
            import_dir / "project_5_items.json",
            {
                "items": [
                    {
                        "title": "Fix login",
                        "assignees": ["alice"],
                        "labels": ["bug"],
                        "linked pull requests": ["https://github.com/orgA/repoA/pull/1"],
                        "reviewers": ["bob"],
                        "repository": "https://github.com/orgA/repoA",
                        "milestone": {"title": "v1"},
                        "content": {"type": "Issue", "url": "https://github.com/orgA/repoA/issues/3"},
                    }
                ]
            },
        )

        ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.add_item.assert_called_once()
        mock_target.update_item_field.assert_not_called()


@pytest.mark.unit
class TestFieldTranslation:
    def test_all_value_kinds(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        mock_target.fetch_fields.return_value = {
            "data": {
                "organization": {
                    "projectV2": {
                        "fields": {
                            "nodes": [
                                {"__typename": "ProjectV2Field", "id": "F_est", "name": "Estimate", "dataType": "NUMBER"},
                                {"__typename": "ProjectV2Field", "id": "F_due", "name": "Due Date", "dataType": "DATE"},
                                {"__typename": "ProjectV2Field", "id": "F_notes", "name": "Notes", "dataType": "TEXT"},
                                {
                                    "__typename": "ProjectV2IterationField",
                                    "id": "F_sprint",
                                    "name": "Sprint",
                                    "dataType": "ITERATION",
                                    "configuration": {
                                        "iterations": [
                                            {"id": "new_it", "title": "Sprint 1", "startDate": "2024-01-01", "duration": 14}
                                        ]
                                    },
                                },
                                {"__typename": "ProjectV2Field", "id": "F_empty", "name": "Empty", "dataType": "TEXT"},
                            ]
                        }
                    }
                }
            }
        }
        write_json(
            import_dir / "project_5_items.json",
            {
                "items": [
                    {
                        "estimate": 0,
                        "due Date": "2024-03-01",
                        "notes": "carry me",
                        "sprint": {"title": "Sprint 1", "startDate": "2024-01-01", "duration": 14, "iterationId": "old"},
                        "empty": "",
                        "content": {"type": "Issue", "url": "https://github.com/orgA/repoA/issues/3"},
                    }
                ]
            },
        )

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert mock_target.update_item_field.call_args_list == [
            call("PVTI_new1", "F_est", NEW_PROJECT_ID, UpdateKind.NUMBER, 0),
            call("PVTI_new1", "F_due", NEW_PROJECT_ID, UpdateKind.DATE, "2024-03-01"),
            call("PVTI_new1", "F_notes", NEW_PROJECT_ID, UpdateKind.TEXT, "carry me"),
            call("PVTI_new1", "F_sprint", NEW_PROJECT_ID, UpdateKind.ITERATION_ID, "new_it"),
        ]
        assert "Empty" not in results[0].items[0].field_outcomes

    def test_unknown_option_is_not_found(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        items = json.loads((import_dir / "project_5_items.json").read_text())
        items["items"][0]["status"] = "InProgress"
        write_json(import_dir / "project_5_items.json", items)

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.update_item_field.assert_not_called()
        result = results[0]
        assert result.state is ProjectState.COMPLETED
        assert result.items[0].field_outcomes == {"Status": FieldOutcome.NOT_FOUND}
        assert "InProgress" in result.errors[0]

    def test_failed_update_does_not_stop_other_fields(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        mock_target.fetch_fields.return_value = {
            "fields": [
                {"id": "F_a", "name": "A", "type": "ProjectV2Field", "dataType": "TEXT"},
                {"id": "F_b", "name": "B", "type": "ProjectV2Field", "dataType": "TEXT"},
            ]
        }
        write_json(
            import_dir / "project_5_items.json",
            {"items": [{"a": "x", "b": "y", "content": {"url": "https://github.com/orgA/repoA/issues/3"}}]},
        )
        mock_target.update_item_field.side_effect = [_gh_error(), None]

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert mock_target.update_item_field.call_count == 2
        assert results[0].items[0].field_outcomes == {"A": FieldOutcome.FAILED, "B": FieldOutcome.APPLIED}

    def test_duplicate_field_name_uses_first_definition(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        payload = target_fields_payload()
        nodes = payload["data"]["organization"]["projectV2"]["fields"]["nodes"]
        nodes.append(
            {
                "__typename": "ProjectV2SingleSelectField",
                "id": "PVTSSF_status_dup",
                "name": "Status",
                "dataType": "SINGLE_SELECT",
                "options": [{"id": "opt_dup_done", "name": "Done"}],
            }
        )
        mock_target.fetch_fields.return_value = payload

        ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.update_item_field.assert_called_once_with(
            "PVTI_new1", STATUS_FIELD_ID, NEW_PROJECT_ID, UpdateKind.SINGLE_SELECT_OPTION_ID, DONE_OPTION_ID
        )


@pytest.mark.unit
class TestItemHandling:
    def test_failed_add_skips_fields_and_continues(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        write_json(
            import_dir / "project_5_items.json",
            {
                "items": [
                    {"status": "Done", "content": {"url": "https://github.com/orgA/repoA/issues/1"}},
                    {"status": "Todo", "content": {"url": "https://github.com/orgA/repoA/issues/2"}},
                ]
            },
        )
        mock_target.add_item.side_effect = [_gh_error("not found"), {"id": "PVTI_2"}]

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        result = results[0]
        assert result.state is ProjectState.COMPLETED
        assert [item.added for item in result.items] == [False, True]
        assert result.items[0].field_outcomes == {"Status": FieldOutcome.SKIPPED}
        mock_target.update_item_field.assert_called_once()
        assert mock_target.update_item_field.call_args.args[0] == "PVTI_2"
        assert "Failed to add item: https://github.com/orgB/repoB/issues/1" in result.errors[0]

    def test_draft_items_are_not_added(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(
            import_dir / "project_5_items.json",
            {"items": [{"title": "Idea", "status": "Todo", "content": {"type": "DraftIssue", "title": "Idea"}}]},
        )

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.add_item.assert_not_called()
        assert results[0].items == []

    def test_item_added_at_most_once_per_run(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        item = {"status": "Done", "content": {"url": "https://github.com/orgA/repoA/issues/3"}}
        write_json(import_dir / "project_5_items.json", {"items": [item, item]})

        ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.add_item.assert_called_once()

    def test_malformed_url_is_item_failure(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(import_dir / "project_5_items.json", {"items": [{"content": {"url": "https://github.com/x"}}]})

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.add_item.assert_not_called()
        assert not results[0].items[0].added
        assert results[0].state is ProjectState.COMPLETED

    def test_ignore_mapping_keeps_repository_name(self, import_dir: Path, tmp_path: Path, mock_target: Mock) -> None:
        config = _config(import_dir, tmp_path / "missing.txt", ignore_mapping=True)

        ProjectMigrator(config, target=mock_target).migrate()

        mock_target.add_item.assert_called_once_with(
            NEW_PROJECT_NUMBER, "orgB", "https://github.com/orgB/repoA/issues/3"
        )


@pytest.mark.unit
class TestProjectStates:
    def test_copy_failure_marks_project_failed_and_continues(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        write_json(
            import_dir / "projects_list.json",
            {
                "projects": [
                    {"number": 4, "title": "Broken", "owner": {"login": "orgA"}},
                    {"number": 5, "title": "Sprint Board", "owner": {"login": "orgA"}},
                ]
            },
        )
        mock_target.copy_project.side_effect = [_gh_error("copy failed"), {"number": 42, "id": NEW_PROJECT_ID}]

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert [r.state for r in results] == [ProjectState.FAILED, ProjectState.COMPLETED]
        assert "Failed to copy project 4 (Broken)" in results[0].errors[0]
        assert not (import_dir / "project_4_copy_output.json").exists()
        assert (import_dir / "project_5_copy_output.json").exists()
        assert json.loads((import_dir / "project_4_migration_result.json").read_text())["state"] == "failed"

    def test_missing_items_file_skips_project(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        (import_dir / "project_5_items.json").unlink()

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert results[0].state is ProjectState.SKIPPED
        assert "Please export project items first" in results[0].errors[0]
        mock_target.fetch_fields.assert_not_called()
        mock_target.add_item.assert_not_called()

    def test_field_query_failure_marks_project_failed(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        mock_target.fetch_fields.side_effect = _gh_error("no access")

        results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert results[0].state is ProjectState.FAILED
        assert not (import_dir / "project_5_target_fields.json").exists()
        mock_target.add_item.assert_not_called()

    def test_specific_project_filter(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(
            import_dir / "projects_list.json",
            {
                "projects": [
                    {"number": 4, "title": "Other", "owner": {"login": "orgA"}},
                    {"number": 5, "title": "Sprint Board", "owner": {"login": "orgA"}},
                ]
            },
        )

        results = ProjectMigrator(_config(import_dir, mapping_file, specific_project=5), target=mock_target).migrate()

        assert [r.source_project_number for r in results] == [5]
        mock_target.copy_project.assert_called_once_with(5, "orgA", "orgB", "Sprint Board")

    def test_specific_project_not_in_list(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        results = ProjectMigrator(_config(import_dir, mapping_file, specific_project=99), target=mock_target).migrate()

        assert results == []
        mock_target.copy_project.assert_not_called()


@pytest.mark.unit
class TestResume:
    def test_reuse_skips_copy_and_field_query(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(import_dir / "project_5_copy_output.json", {"number": 77, "id": "PVT_prev"})
        write_json(import_dir / "project_5_target_fields.json", target_fields_payload())

        results = ProjectMigrator(_config(import_dir, mapping_file, use_existing=True), target=mock_target).migrate()

        mock_target.copy_project.assert_not_called()
        mock_target.fetch_fields.assert_not_called()
        # Items are not checkpointed: every item is added again
        mock_target.add_item.assert_called_once_with(77, "orgB", "https://github.com/orgB/repoB/issues/3")
        assert mock_target.update_item_field.call_args.args[2] == "PVT_prev"
        assert results[0].new_project_number == 77

    def test_reuse_fetches_missing_field_list(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(import_dir / "project_5_copy_output.json", {"number": 77, "id": "PVT_prev"})

        ProjectMigrator(_config(import_dir, mapping_file, use_existing=True), target=mock_target).migrate()

        mock_target.copy_project.assert_not_called()
        mock_target.fetch_fields.assert_called_once_with("orgB", 77)

    def test_existing_copy_output_without_reuse_aborts(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        write_json(import_dir / "project_5_copy_output.json", {"number": 77, "id": "PVT_prev"})

        with pytest.raises(PreconditionError, match="already exist"):
            ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        mock_target.copy_project.assert_not_called()
        mock_target.add_item.assert_not_called()

    def test_corrupt_copy_output_fails_project(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        (import_dir / "project_5_copy_output.json").write_text("{")

        results = ProjectMigrator(_config(import_dir, mapping_file, use_existing=True), target=mock_target).migrate()

        assert results[0].state is ProjectState.FAILED
        mock_target.copy_project.assert_not_called()


@pytest.mark.unit
class TestPreconditions:
    def test_missing_import_path(self, tmp_path: Path, mapping_file: Path, mock_target: Mock) -> None:
        with pytest.raises(PreconditionError, match="does not exist"):
            ProjectMigrator(_config(tmp_path / "nope", mapping_file), target=mock_target).migrate()

    def test_missing_mapping_file(self, import_dir: Path, tmp_path: Path, mock_target: Mock) -> None:
        with pytest.raises(PreconditionError, match="is not present"):
            ProjectMigrator(_config(import_dir, tmp_path / "missing.txt"), target=mock_target).migrate()
        mock_target.copy_project.assert_not_called()

    def test_unmapped_repositories_are_logged(
        self, import_dir: Path, tmp_path: Path, mock_target: Mock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mapping = tmp_path / "other_mapping.txt"
        mapping.write_text("unrelated,renamed\n")

        with caplog.at_level("WARNING"):
            ProjectMigrator(_config(import_dir, mapping), target=mock_target).migrate()

        assert "repositories without a mapping entry keep their name: repoA" in caplog.text

    def test_source_fields_missing_from_target_are_logged(
        self, import_dir: Path, mapping_file: Path, mock_target: Mock, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_json(
            import_dir / "project_5_fields.json",
            {
                "fields": [
                    {"id": "F1", "name": "Status", "type": "ProjectV2SingleSelectField", "options": []},
                    {"id": "F2", "name": "Estimate", "type": "ProjectV2Field", "dataType": "NUMBER"},
                    {"id": "F3", "name": "Title", "type": "ProjectV2Field", "dataType": "TITLE"},
                ]
            },
        )

        with caplog.at_level("WARNING"):
            results = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

        assert results[0].state is ProjectState.COMPLETED
        assert "source fields missing from the new project are not migrated: Estimate" in caplog.text


@pytest.mark.unit
class TestLoadProjects:
    def test_records_become_snapshots(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        projects = ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).load_projects()

        assert projects == [ProjectSnapshot(number=5, title="Sprint Board", owner="orgA")]

    def test_record_without_number(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(import_dir / "projects_list.json", {"projects": [{"title": "x"}]})

        with pytest.raises(MigrationError, match="Malformed project record #0"):
            ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()
        mock_target.copy_project.assert_not_called()

    def test_non_numeric_number(self, import_dir: Path, mapping_file: Path, mock_target: Mock) -> None:
        write_json(import_dir / "projects_list.json", {"projects": [{"number": "five", "title": "x"}]})

        with pytest.raises(MigrationError, match="Malformed project record"):
            ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()

    @pytest.mark.parametrize("payload", [[{"number": 5}], {"projects": {"number": 5}}, {}])
    def test_payload_without_project_list(
        self, payload: object, import_dir: Path, mapping_file: Path, mock_target: Mock
    ) -> None:
        write_json(import_dir / "projects_list.json", payload)

        with pytest.raises(MigrationError, match="has no 'projects' list"):
            ProjectMigrator(_config(import_dir, mapping_file), target=mock_target).migrate()
        mock_target.copy_project.assert_not_called()
