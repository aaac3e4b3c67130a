"""
Export the projects of a GitHub organization to JSON snapshot files.

The export directory afterwards contains:
    projects_list.json            the owner's projects (number, title, owner)
    project_<n>_items.json        the items of each project with their field values
    project_<n>_fields.json       the field schema of each project

Usage:
    uv run github-project-export -o <organization> [-p <export_path>]
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from . import gh_cli
from .artifacts import ArtifactStore
from .config import DEFAULT_IMPORT_PATH, ExportConfig
from .exceptions import MigrationError, PreconditionError
from .utils import setup_logging

if TYPE_CHECKING:
    from .protocols import ProjectSource

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class ExportSummary:
    exported_projects: list[int] = field(default_factory=list)
    failed_projects: list[tuple[int, str]] = field(default_factory=list)


def create_export_path(export_path: Path) -> None:
    """Create the export directory, refusing to reuse an existing one."""
    if export_path.exists():
        msg = f"Export path {export_path} already exists please delete it or specify a new path."
        raise PreconditionError(msg)
    export_path.mkdir(parents=True)
    logger.info(f"Created export path: {export_path}")


def export_projects(config: ExportConfig, source: ProjectSource | None = None) -> ExportSummary:
    """Write the project list, items and field schema of every project of the owner.

    Raises:
        PreconditionError: If the export directory already exists
        MigrationError: If the project list cannot be fetched
    """
    source = source if source is not None else gh_cli
    store = ArtifactStore(config.export_path)
    summary = ExportSummary()

    create_export_path(config.export_path)

    projects_payload = source.list_projects(config.source_org)
    store.write_json(store.projects_list_path, projects_payload)
    projects = projects_payload.get("projects") or []
    print(f"Exported project list for {config.source_org} to {store.projects_list_path}")

    for project in projects:
        number = int(project["number"])
        try:
            store.write_json(store.items_path(number), source.list_items(number, config.source_org))
        except (MigrationError, OSError) as e:
            logger.error(f"Failed to export project {number}: {e}")
            summary.failed_projects.append((number, str(e)))
            continue
        summary.exported_projects.append(number)

        # The field schema only feeds import diagnostics.
        try:
            store.write_json(store.source_fields_path(number), source.fetch_fields(config.source_org, number))
        except (MigrationError, OSError) as e:
            logger.warning(f"Failed to export field list of project {number}: {e}")
        print(f"Exported project {number} items to {store.items_path(number)}")

    return summary


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export GitHub projects and their items to JSON files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
            Examples:
              uv run github-project-export -o old-org
              uv run github-project-export -o old-org -p snapshots/old-org
        """),
    )
    _ = parser.add_argument("-o", "--org", required=True, help="Organization (or user) owning the projects")
    _ = parser.add_argument(
        "-p", "--export-path", default=DEFAULT_IMPORT_PATH, help=f"Directory to create (default: {DEFAULT_IMPORT_PATH})"
    )
    _ = parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase verbosity (-v, -vv)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the export script."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        gh_cli.check_version()
        summary = export_projects(ExportConfig(source_org=args.org, export_path=Path(args.export_path)))
    except (MigrationError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"\nExported {len(summary.exported_projects)} projects")
    if summary.failed_projects:
        print(f"Failed to export {len(summary.failed_projects)} projects:")
        for number, error in summary.failed_projects:
            print(f"  - project {number}: {error}")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
