"""Run configuration, resolved once from the command line and passed to every component."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_MAPPING_FILE: Final[str] = "repository_mapping.txt"
DEFAULT_PROJECTS_LIST_FILE: Final[str] = "projects_list.json"
DEFAULT_IMPORT_PATH: Final[str] = "export"


@dataclass(frozen=True)
class MigrationConfig:
    """Settings for importing exported projects into the target organization."""

    target_org: str
    import_path: Path = Path(DEFAULT_IMPORT_PATH)
    mapping_file: Path = Path(DEFAULT_MAPPING_FILE)
    projects_list_file: str = DEFAULT_PROJECTS_LIST_FILE
    ignore_mapping: bool = False
    use_existing: bool = False
    specific_project: int | None = None

    def __post_init__(self) -> None:
        if not self.target_org or not self.target_org.strip():
            msg = "Target organization is required."
            raise ValueError(msg)


@dataclass(frozen=True)
class ExportConfig:
    """Settings for capturing a snapshot of an organization's projects."""

    source_org: str
    export_path: Path = Path(DEFAULT_IMPORT_PATH)

    def __post_init__(self) -> None:
        if not self.source_org or not self.source_org.strip():
            msg = "Organization name is required."
            raise ValueError(msg)
