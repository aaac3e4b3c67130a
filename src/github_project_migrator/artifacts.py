"""
Persisted per-project artifacts of the export and import steps.

The presence of a project's copy output and target field list is what lets a
later run skip work that already happened. All files are keyed by the source
project number and live directly in the import directory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .exceptions import PreconditionError

logger: logging.Logger = logging.getLogger(__name__)

COPY_OUTPUT_GLOB = "project_*_copy_output.json"


class ArtifactStore:
    """Locates, reads and atomically writes the JSON artifacts of a migration."""

    def __init__(self, import_path: Path, projects_list_file: str = "projects_list.json") -> None:
        self.import_path: Path = import_path
        self.projects_list_file: str = projects_list_file

    @property
    def projects_list_path(self) -> Path:
        return self.import_path / self.projects_list_file

    def items_path(self, project_number: int) -> Path:
        return self.import_path / f"project_{project_number}_items.json"

    def source_fields_path(self, project_number: int) -> Path:
        return self.import_path / f"project_{project_number}_fields.json"

    def copy_output_path(self, project_number: int) -> Path:
        return self.import_path / f"project_{project_number}_copy_output.json"

    def target_fields_path(self, project_number: int) -> Path:
        return self.import_path / f"project_{project_number}_target_fields.json"

    def result_path(self, project_number: int) -> Path:
        return self.import_path / f"project_{project_number}_migration_result.json"

    def has_copy_output(self, project_number: int) -> bool:
        return self.copy_output_path(project_number).is_file()

    def has_target_fields(self, project_number: int) -> bool:
        return self.target_fields_path(project_number).is_file()

    def any_copy_output(self) -> bool:
        return any(path.is_file() for path in self.import_path.glob(COPY_OUTPUT_GLOB))

    def check_import_path(self) -> None:
        if not self.import_path.is_dir():
            msg = f"Import path '{self.import_path}' does not exist."
            raise PreconditionError(msg)

    def check_copy_files(self, *, use_existing: bool, specific_project: int | None) -> None:
        """Refuse to start when earlier copy output exists and reuse was not requested.

        Raises:
            PreconditionError: If a previous run's copy output would be overwritten
        """
        if use_existing:
            logger.info("Using existing project copy output files where present, copying the remaining projects")
            return

        if specific_project is not None:
            if self.has_copy_output(specific_project):
                msg = f"Project copy output file for project {specific_project} already exists."
                raise PreconditionError(msg)
        elif self.any_copy_output():
            msg = "Project copy JSON output files already exist in the import directory."
            raise PreconditionError(msg)

    @staticmethod
    def read_json(path: Path) -> Any:
        with path.open(encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def write_json(path: Path, data: Any) -> None:
        """Write data as JSON so readers only ever see a complete file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {path}")
