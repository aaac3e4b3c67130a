"""Protocols describing the external GitHub operations used by the migration.

The migration logic only talks to GitHub through these operations:

1. ProjectSource: reads project lists, items and field schemas (export step)
2. ProjectTarget: copies projects, adds items and sets field values (import step)

The `gh_cli` module implements both by shelling out to the gh CLI. Tests pass
a mock in its place, which keeps the orchestration testable without a network.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import UpdateKind


class ProjectSource(Protocol):
    """Operations for capturing a snapshot of an owner's projects."""

    def list_projects(self, owner: str) -> dict[str, Any]:
        """Return `{"projects": [{"number", "title", "owner": {"login"}}, ...]}`."""
        ...

    def list_items(self, project_number: int, owner: str) -> dict[str, Any]:
        """Return `{"items": [...]}` with one record per project item.

        Each record carries `content.url`, `repository` and one key per field
        holding a value, named after the field with its first letter lower-cased.
        """
        ...

    def fetch_fields(self, owner: str, project_number: int) -> dict[str, Any]:
        """Return the GraphQL field schema of a project, with options and iterations."""
        ...


class ProjectTarget(Protocol):
    """Operations that create and fill a project in the target owner.

    The orchestrator calls them in this order for each project:
    1. copy_project() - once, unless a copy output artifact already exists
    2. fetch_fields() - once, unless a target field artifact already exists
    3. add_item() - once per item with a URL
    4. update_item_field() - once per migratable, non-empty field value
    """

    def copy_project(self, project_number: int, source_owner: str, target_owner: str, title: str) -> dict[str, Any]:
        """Copy a project, returning at least `{"number": int, "id": str}`.

        Raises:
            MigrationError: If the copy fails
        """
        ...

    def fetch_fields(self, owner: str, project_number: int) -> dict[str, Any]:
        """Return the GraphQL field schema of the copied project."""
        ...

    def add_item(self, project_number: int, owner: str, url: str) -> dict[str, Any]:
        """Add an issue or pull request by URL, returning at least `{"id": str}`.

        Raises:
            MigrationError: If the item could not be added
        """
        ...

    def update_item_field(
        self,
        item_id: str,
        field_id: str,
        project_id: str,
        kind: UpdateKind,
        value: str | int | float,
    ) -> None:
        """Set a single field value of an item.

        Raises:
            MigrationError: If the update fails
        """
        ...
