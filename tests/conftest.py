"""
Pytest configuration and fixtures.

Fixtures build an export directory the way `github-project-export` leaves it,
and a mock standing in for the gh CLI so no test touches the network.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import Mock

import pytest

if TYPE_CHECKING:
    from pathlib import Path

NEW_PROJECT_NUMBER = 42
NEW_PROJECT_ID = "PVT_new42"
STATUS_FIELD_ID = "PVTSSF_status"
TODO_OPTION_ID = "opt_todo"
DONE_OPTION_ID = "opt_done"


def write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data))


def target_fields_payload() -> dict[str, Any]:
    """GraphQL field schema of the copied project."""
    return {
        "data": {
            "organization": {
                "projectV2": {
                    "fields": {
                        "nodes": [
                            {"__typename": "ProjectV2Field", "id": "PVTF_title", "name": "Title", "dataType": "TITLE"},
                            {
                                "__typename": "ProjectV2Field",
                                "id": "PVTF_assignees",
                                "name": "Assignees",
                                "dataType": "ASSIGNEES",
                            },
                            {
                                "__typename": "ProjectV2SingleSelectField",
                                "id": STATUS_FIELD_ID,
                                "name": "Status",
                                "dataType": "SINGLE_SELECT",
                                "options": [
                                    {"id": TODO_OPTION_ID, "name": "Todo"},
                                    {"id": DONE_OPTION_ID, "name": "Done"},
                                ],
                            },
                            {
                                "__typename": "ProjectV2Field",
                                "id": "PVTF_repository",
                                "name": "Repository",
                                "dataType": "REPOSITORY",
                            },
                        ]
                    }
                }
            }
        }
    }


@pytest.fixture
def import_dir(tmp_path: Path) -> Path:
    """Export directory with one project (5, "Sprint Board", orgA) holding one issue."""
    export = tmp_path / "export"
    export.mkdir()
    write_json(
        export / "projects_list.json",
        {"projects": [{"number": 5, "title": "Sprint Board", "owner": {"login": "orgA", "type": "Organization"}}]},
    )
    write_json(
        export / "project_5_items.json",
        {
            "items": [
                {
                    "id": "PVTI_old1",
                    "title": "Fix login",
                    "status": "Done",
                    "assignees": ["alice"],
                    "repository": "https://github.com/orgA/repoA",
                    "content": {
                        "type": "Issue",
                        "url": "https://github.com/orgA/repoA/issues/3",
                        "number": 3,
                        "repository": "orgA/repoA",
                    },
                }
            ],
            "totalCount": 1,
        },
    )
    return export


@pytest.fixture
def mapping_file(tmp_path: Path) -> Path:
    path = tmp_path / "repository_mapping.txt"
    path.write_text("repoA,repoB\n")
    return path


@pytest.fixture
def mock_target() -> Mock:
    """A ProjectTarget whose calls all succeed."""
    target = Mock()
    target.copy_project.return_value = {"number": NEW_PROJECT_NUMBER, "id": NEW_PROJECT_ID, "title": "Sprint Board"}
    target.fetch_fields.return_value = target_fields_payload()
    target.add_item.return_value = {"id": "PVTI_new1"}
    target.update_item_field.return_value = None
    return target
