"""Project migration orchestrator.

Recreates exported projects in the target owner and transplants their items.

Migration Flow
--------------
Before anything is copied:
    - The import directory must exist
    - Copy output left by an earlier run aborts the run unless reuse is requested
    - The repository mapping file must exist unless mapping is ignored

Then, for each project in the exported project list (in list order):

Step 1: Copy
    - Reuse `project_<n>_copy_output.json` if present
    - Otherwise `gh project copy` (with draft issues) and persist its output

Step 2: Items snapshot
    - Read `project_<n>_items.json`; a missing file leaves the project SKIPPED
    - Read `project_<n>_fields.json` if present, to report source fields the
      new project lacks

Step 3: Target fields
    - Reuse `project_<n>_target_fields.json` if present
    - Otherwise query the copied project's field schema and persist it

Step 4: Items
    For each item with a content URL:
        a. Remap the URL to the target owner and repository
        b. Add it to the copied project
        c. For each migratable field with a value, translate the value to the
           target field/option/iteration and set it

Error Handling
--------------
- Precondition failures raise PreconditionError before any remote mutation
- A failed copy or field query marks the project FAILED; other projects continue
- A failed item-add skips that item's fields; other items continue
- An untranslatable value or failed update skips that field; other fields continue

Items are not checkpointed individually. Re-running a project with reused
artifacts adds every item again; GitHub returns the existing item for an
issue already on the project.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from . import gh_cli
from .artifacts import ArtifactStore
from .exceptions import MigrationError
from .fields import (
    FIELDS_TO_IGNORE,
    attribute_key,
    build_included_fields,
    is_empty_value,
    parse_field_definitions,
    parse_items,
    resolve_value,
)
from .models import (
    CopyOutput,
    FieldDefinition,
    FieldOutcome,
    ItemOutcome,
    ItemSnapshot,
    MigrationResult,
    NotFound,
    ProjectSnapshot,
    ProjectState,
)
from .repository_mapping import load_repository_map
from .url_remap import remap_url, split_owner_repo

if TYPE_CHECKING:
    from .config import MigrationConfig
    from .protocols import ProjectTarget
    from .repository_mapping import RepositoryMap

logger: logging.Logger = logging.getLogger(__name__)


class ProjectMigrator:
    """Imports exported projects into the target owner.

    Usage:
        migrator = ProjectMigrator(MigrationConfig(target_org="new-org"))
        results = migrator.migrate()
    """

    def __init__(
        self,
        config: MigrationConfig,
        *,
        repository_map: RepositoryMap | None = None,
        target: ProjectTarget | None = None,
    ) -> None:
        self.config: MigrationConfig = config
        self.store: ArtifactStore = ArtifactStore(config.import_path, config.projects_list_file)
        self.target: ProjectTarget = target if target is not None else gh_cli
        self._repository_map: RepositoryMap | None = repository_map

    @property
    def repository_map(self) -> RepositoryMap:
        if self._repository_map is None:
            msg = "Repository mapping not loaded yet. Call check_preconditions() first."
            raise MigrationError(msg)
        return self._repository_map

    def check_preconditions(self) -> None:
        """Validate everything that must hold before the first remote call.

        Raises:
            PreconditionError: If the run must not start
        """
        self.store.check_import_path()
        self.store.check_copy_files(
            use_existing=self.config.use_existing,
            specific_project=self.config.specific_project,
        )
        if self._repository_map is None:
            self._repository_map = load_repository_map(self.config)

    def load_projects(self) -> list[ProjectSnapshot]:
        """Return the exported projects selected for this run, in export order.

        Raises:
            MigrationError: If the project list cannot be read or has malformed records
        """
        path = self.store.projects_list_path
        try:
            payload = self.store.read_json(path)
        except (OSError, ValueError) as e:
            msg = f"Failed to read project list {path}: {e}"
            raise MigrationError(msg) from e

        records = payload.get("projects") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            msg = f"Project list {path} has no 'projects' list"
            raise MigrationError(msg)

        projects: list[ProjectSnapshot] = []
        for index, record in enumerate(records):
            try:
                projects.append(ProjectSnapshot.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                msg = f"Malformed project record #{index} in {path}: {e!r}"
                raise MigrationError(msg) from e

        if self.config.specific_project is None:
            return projects

        selected = [p for p in projects if p.number == self.config.specific_project]
        if not selected:
            logger.warning(f"Project {self.config.specific_project} is not in {path}, nothing to import")
        return selected

    def migrate(self) -> list[MigrationResult]:
        """Run the whole import and return one result per processed project.

        Raises:
            PreconditionError: If the run must not start
            MigrationError: If the project list cannot be read
        """
        self.check_preconditions()
        return [self.migrate_project(project) for project in self.load_projects()]

    def migrate_project(self, project: ProjectSnapshot) -> MigrationResult:
        """Copy one project and migrate its items. Never raises for per-project failures."""
        project_number = project.number
        result = MigrationResult(source_project_number=project_number)

        copy_output = self._copy_project(project_number, project.title, project.owner, result)
        if copy_output is None:
            result.state = ProjectState.FAILED
            self._save_result(result)
            return result
        result.new_project_number = copy_output.number
        result.new_project_id = copy_output.id

        snapshot = self._load_snapshot(project, result)
        if snapshot is None:
            result.state = ProjectState.SKIPPED
            self._save_result(result)
            return result

        target_fields = self._target_fields(project_number, copy_output, result)
        if target_fields is None:
            result.state = ProjectState.FAILED
            self._save_result(result)
            return result

        self._warn_unmapped_repositories(project_number, snapshot.items)
        self._warn_missing_target_fields(snapshot, target_fields)

        logger.info(
            f"Linking {len(snapshot.items)} items from project {project_number} "
            f"to new project {copy_output.number}..."
        )
        fields_by_name: dict[str, FieldDefinition] = {}
        for field_def in target_fields:
            fields_by_name.setdefault(field_def.name, field_def)
        included = build_included_fields(target_fields, FIELDS_TO_IGNORE)
        added_urls: set[str] = set()
        for item in snapshot.items:
            self._migrate_item(item, copy_output, fields_by_name, included, added_urls, result)

        result.state = ProjectState.COMPLETED
        logger.info(
            f"Project {project_number} completed: {result.items_added}/{len(result.items)} items added, "
            f"{result.fields_applied} field values set, {len(result.errors)} errors"
        )
        self._save_result(result)
        return result

    def _copy_project(
        self, project_number: int, title: str, source_owner: str, result: MigrationResult
    ) -> CopyOutput | None:
        path = self.store.copy_output_path(project_number)

        if self.store.has_copy_output(project_number):
            logger.info(f"Project copy output file for project {project_number} already exists, reusing it")
            try:
                return CopyOutput.from_dict(self.store.read_json(path))
            except (OSError, ValueError, KeyError, TypeError) as e:
                msg = f"Project {project_number}: unreadable copy output {path}: {e}"
                logger.error(msg)
                result.errors.append(msg)
                return None

        logger.info(f"Copying project {project_number} ({title}) from {source_owner} to {self.config.target_org}...")
        try:
            raw_output = self.target.copy_project(project_number, source_owner, self.config.target_org, title)
            copy_output = CopyOutput.from_dict(raw_output)
        except (MigrationError, KeyError, TypeError, ValueError) as e:
            msg = f"Failed to copy project {project_number} ({title}): {e}"
            logger.error(msg)
            result.errors.append(msg)
            return None

        try:
            self.store.write_json(path, raw_output)
        except OSError as e:
            msg = f"Project {project_number} was copied but {path} could not be written: {e}"
            logger.error(msg)
            result.errors.append(msg)
        logger.info(f"Project {project_number} copied successfully as project {copy_output.number}")
        return copy_output

    def _load_snapshot(self, project: ProjectSnapshot, result: MigrationResult) -> ProjectSnapshot | None:
        """Attach the exported items and source field schema to the project."""
        path = self.store.items_path(project.number)
        if not path.is_file():
            msg = f"Project items file not found at {path}. Please export project items first."
            logger.warning(msg)
            result.errors.append(msg)
            return None
        try:
            items = parse_items(self.store.read_json(path))
        except (OSError, ValueError, AttributeError) as e:
            msg = f"Project {project.number}: unreadable items file {path}: {e}"
            logger.error(msg)
            result.errors.append(msg)
            return None

        source_fields: list[FieldDefinition] = []
        fields_path = self.store.source_fields_path(project.number)
        if fields_path.is_file():
            try:
                source_fields = parse_field_definitions(self.store.read_json(fields_path))
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Project {project.number}: ignoring unreadable source field list {fields_path}: {e}")

        return replace(project, items=tuple(items), fields=tuple(source_fields))

    def _warn_missing_target_fields(self, snapshot: ProjectSnapshot, target_fields: list[FieldDefinition]) -> None:
        target_names = {field_def.name for field_def in target_fields}
        missing = [
            name
            for name in build_included_fields(list(snapshot.fields), FIELDS_TO_IGNORE)
            if name not in target_names
        ]
        if missing:
            logger.warning(
                f"Project {snapshot.number}: source fields missing from the new project are not migrated: "
                f"{', '.join(missing)}"
            )

    def _target_fields(
        self, project_number: int, copy_output: CopyOutput, result: MigrationResult
    ) -> list[FieldDefinition] | None:
        path = self.store.target_fields_path(project_number)
        try:
            if self.store.has_target_fields(project_number):
                logger.debug(f"Reusing target field list {path}")
                payload = self.store.read_json(path)
            else:
                logger.info(f"Fetching fields of new project {copy_output.number}")
                payload = self.target.fetch_fields(self.config.target_org, copy_output.number)
                self.store.write_json(path, payload)
            return parse_field_definitions(payload)
        except (MigrationError, OSError, ValueError, KeyError, TypeError) as e:
            msg = f"Project {project_number}: failed to get fields of new project {copy_output.number}: {e}"
            logger.error(msg)
            result.errors.append(msg)
            return None

    def _warn_unmapped_repositories(self, project_number: int, items: Sequence[ItemSnapshot]) -> None:
        if self.config.ignore_mapping:
            return
        repositories: list[str] = []
        for item in items:
            if not item.content_url:
                continue
            try:
                repositories.append(split_owner_repo(item.content_url)[1])
            except ValueError:
                continue
        unmapped = self.repository_map.unmapped(repositories)
        if unmapped:
            logger.warning(
                f"Project {project_number}: repositories without a mapping entry keep their name: {', '.join(unmapped)}"
            )

    def _migrate_item(
        self,
        item: ItemSnapshot,
        copy_output: CopyOutput,
        fields_by_name: dict[str, FieldDefinition],
        included: list[str],
        added_urls: set[str],
        result: MigrationResult,
    ) -> None:
        if not item.content_url:
            # Draft issues have no URL; the project copy already brought them over.
            logger.debug(f"Skipping {item.content_type or 'item'} without URL")
            return

        outcome = ItemOutcome(item_url=item.content_url)
        result.items.append(outcome)
        values: dict[str, Any] = {}
        for name in included:
            raw_value = item.attribute_values.get(attribute_key(name))
            if not is_empty_value(raw_value):
                values[name] = raw_value

        try:
            remapped_url = remap_url(
                item.content_url,
                self.config.target_org,
                self.repository_map,
                ignore_mapping=self.config.ignore_mapping,
            )
        except ValueError as e:
            self._item_failed(outcome, values, f"Failed to remap item URL {item.content_url}: {e}", result)
            return
        outcome.item_url = remapped_url

        if remapped_url in added_urls:
            logger.info(f"Item {remapped_url} already added in this run, skipping")
            outcome.added = True
            outcome.field_outcomes = dict.fromkeys(values, FieldOutcome.SKIPPED)
            return

        try:
            added = self.target.add_item(copy_output.number, self.config.target_org, remapped_url)
            item_id = str(added["id"])
        except (MigrationError, KeyError, TypeError) as e:
            self._item_failed(outcome, values, f"Failed to add item: {remapped_url}: {e}", result)
            return
        added_urls.add(remapped_url)
        outcome.added = True
        logger.debug(f"Added {remapped_url} as item {item_id}")

        for name, raw_value in values.items():
            outcome.field_outcomes[name] = self._apply_field(
                item_id, remapped_url, fields_by_name[name], raw_value, copy_output, result
            )

    def _item_failed(
        self, outcome: ItemOutcome, values: dict[str, Any], msg: str, result: MigrationResult
    ) -> None:
        logger.error(msg)
        result.errors.append(msg)
        outcome.field_outcomes = dict.fromkeys(values, FieldOutcome.SKIPPED)

    def _apply_field(
        self,
        item_id: str,
        item_url: str,
        field_def: FieldDefinition,
        raw_value: Any,
        copy_output: CopyOutput,
        result: MigrationResult,
    ) -> FieldOutcome:
        update = resolve_value(field_def, raw_value)
        if isinstance(update, NotFound):
            msg = f"Item {item_url}: field '{field_def.name}' not migrated: {update.reason}"
            logger.warning(msg)
            result.errors.append(msg)
            return FieldOutcome.NOT_FOUND

        try:
            self.target.update_item_field(item_id, update.field_id, copy_output.id, update.kind, update.value)
        except MigrationError as e:
            msg = f"Item {item_url}: failed to set field '{field_def.name}' to {raw_value!r}: {e}"
            logger.error(msg)
            result.errors.append(msg)
            return FieldOutcome.FAILED

        logger.debug(f"Item {item_url}: set '{field_def.name}' ({update.kind.value}={update.value!r})")
        return FieldOutcome.APPLIED

    def _save_result(self, result: MigrationResult) -> None:
        path = self.store.result_path(result.source_project_number)
        try:
            self.store.write_json(path, result.to_dict())
        except OSError as e:
            logger.error(f"Failed to write migration result {path}: {e}")
