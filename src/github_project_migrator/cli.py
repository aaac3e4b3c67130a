"""
Command-line interface for importing exported projects into the target organization.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .config import DEFAULT_IMPORT_PATH, DEFAULT_MAPPING_FILE, DEFAULT_PROJECTS_LIST_FILE, MigrationConfig
from .exceptions import MigrationError, PreconditionError
from .migrator import ProjectMigrator
from .models import ProjectState
from .utils import PassError, setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import MigrationResult

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Import exported GitHub projects and their items into another organization"
    )

    _ = parser.add_argument("-o", "--target-org", required=True, help="Target organization (or user)")
    _ = parser.add_argument(
        "-m",
        "--mapping-file",
        default=DEFAULT_MAPPING_FILE,
        help=f"Repository mapping file with 'sourceRepo,targetRepo' lines (default: {DEFAULT_MAPPING_FILE})",
    )
    _ = parser.add_argument(
        "-p",
        "--projects-list-file",
        default=DEFAULT_PROJECTS_LIST_FILE,
        help=f"Project list file inside the import path (default: {DEFAULT_PROJECTS_LIST_FILE})",
    )
    _ = parser.add_argument(
        "-i", "--import-path", default=DEFAULT_IMPORT_PATH, help=f"Export directory (default: {DEFAULT_IMPORT_PATH})"
    )
    _ = parser.add_argument(
        "-n", "--ignore-mapping", action="store_true", help="Ignore mapping file and use the same repository names"
    )
    _ = parser.add_argument(
        "-e",
        "--use-existing",
        action="store_true",
        help="Reuse existing project copy output files instead of copying those projects again",
    )
    _ = parser.add_argument(
        "-s", "--specific-project", type=int, help="Import a specific project by providing its number"
    )
    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: GH_TOKEN, GITHUB_TOKEN, gh login)"
    )
    _ = parser.add_argument(
        "--skip-owner-check", action="store_true", help="Do not verify that the target owner exists on GitHub"
    )
    _ = parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase verbosity (-v, -vv)")

    return parser.parse_args(argv)


def _print_migration_report(results: Sequence[MigrationResult]) -> None:
    """Print a per-project summary of the import."""
    print("\n" + "=" * 60)
    print("Project migration report")
    print("=" * 60)

    if not results:
        print("No projects were processed.")

    for result in results:
        new_project = f"#{result.new_project_number}" if result.new_project_number is not None else "-"
        print(
            f"Project {result.source_project_number} -> {new_project}: {result.state.value.upper()} "
            f"(items added={result.items_added}/{len(result.items)}, fields set={result.fields_applied})"
        )
        for error in result.errors:
            print(f"  - {error}")

    print("=" * 60)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        config = MigrationConfig(
            target_org=args.target_org,
            import_path=Path(args.import_path),
            mapping_file=Path(args.mapping_file),
            projects_list_file=args.projects_list_file,
            ignore_mapping=args.ignore_mapping,
            use_existing=args.use_existing,
            specific_project=args.specific_project,
        )

        migrator = ProjectMigrator(config)
        migrator.check_preconditions()

        if not args.skip_owner_check:
            token = ghu.get_token(args.github_pass_token)
            ghu.validate_owner(ghu.get_client(token), config.target_org)

        results = migrator.migrate()
    except (PreconditionError, ValueError, PassError) as e:
        logger.error(str(e))
        sys.exit(1)
    except MigrationError:
        logger.exception("Migration failed")
        sys.exit(1)

    _print_migration_report(results)

    if any(result.state is ProjectState.FAILED for result in results):
        sys.exit(1)
    sys.exit(0)
