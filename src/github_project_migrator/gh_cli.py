"""GitHub project operations using the gh CLI.

Every call blocks until `gh` exits. Timeouts are left to gh itself.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from collections.abc import Sequence
from typing import Any, Final

from .exceptions import GhCommandError, MigrationError, PreconditionError
from .models import UpdateKind

logger: logging.Logger = logging.getLogger(__name__)

GH: Final[str] = "gh"
REQUIRED_VERSION: Final[str] = "2.36.0"
PROJECT_LIST_LIMIT: Final[int] = 1000
ITEM_LIST_LIMIT: Final[int] = 10000

_UPDATE_FLAGS: Final[dict[UpdateKind, str]] = {
    UpdateKind.SINGLE_SELECT_OPTION_ID: "--single-select-option-id",
    UpdateKind.ITERATION_ID: "--iteration-id",
    UpdateKind.NUMBER: "--number",
    UpdateKind.DATE: "--date",
    UpdateKind.TEXT: "--text",
}

_ITERATION_FRAGMENT: Final[str] = "id startDate title duration"

FIELDS_QUERY_TEMPLATE: Final[str] = (
    "query($owner: String!, $number: Int!) {"
    " %(owner_kind)s(login: $owner) { projectV2(number: $number) { fields(first: 100) { nodes {"
    " __typename"
    " ... on ProjectV2Field { id name dataType }"
    " ... on ProjectV2SingleSelectField { id name dataType options { id name } }"
    " ... on ProjectV2IterationField { id name dataType configuration {"
    f" iterations {{ {_ITERATION_FRAGMENT} }} completedIterations {{ {_ITERATION_FRAGMENT} }}"
    " } }"
    " } } } } }"
)


def _run(args: Sequence[str]) -> subprocess.CompletedProcess[str]:
    cmd = [GH, *args]
    logger.debug(f"Running: {' '.join(cmd)}")
    return subprocess.run(  # noqa: S603
        cmd,
        capture_output=True,
        text=True,
        check=False,
    )


def _run_checked(args: Sequence[str]) -> str:
    result = _run(args)
    if result.returncode != 0:
        raise GhCommandError([GH, *args], result.returncode, result.stderr or "")
    return result.stdout


def gh_json(args: Sequence[str]) -> Any:
    """Run gh and decode its JSON output."""
    raw = _run_checked(args)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse JSON from: {GH} {' '.join(args)}\n{e}\nRAW:\n{raw[:2000]}"
        raise MigrationError(msg) from e


def copy_project(project_number: int, source_owner: str, target_owner: str, title: str) -> dict[str, Any]:
    """Copy a project (including draft issues) into the target owner."""
    return gh_json(
        [
            "project",
            "copy",
            str(project_number),
            "--drafts",
            "--format",
            "json",
            "--source-owner",
            source_owner,
            "--target-owner",
            target_owner,
            "--title",
            title,
        ]
    )


def fetch_fields(owner: str, project_number: int) -> dict[str, Any]:
    """Fetch the field schema, including options and iterations, of a project.

    Projects belong to either an organization or a user; the organization
    query is tried first.
    """
    first_error: GhCommandError | None = None
    for owner_kind in ("organization", "user"):
        query = FIELDS_QUERY_TEMPLATE % {"owner_kind": owner_kind}
        try:
            return gh_json(
                [
                    "api",
                    "graphql",
                    "-f",
                    f"query={query}",
                    "-f",
                    f"owner={owner}",
                    "-F",
                    f"number={project_number}",
                ]
            )
        except GhCommandError as e:
            logger.debug(f"Field query as {owner_kind} failed for {owner}/{project_number}: {e.stderr.strip()}")
            first_error = first_error or e
    assert first_error is not None
    raise first_error


def add_item(project_number: int, owner: str, url: str) -> dict[str, Any]:
    """Add an issue or pull request to a project, returning the new item."""
    return gh_json(["project", "item-add", str(project_number), "--owner", owner, "--url", url, "--format", "json"])


def update_item_field(
    item_id: str,
    field_id: str,
    project_id: str,
    kind: UpdateKind,
    value: str | int | float,
) -> None:
    """Set one field of a project item."""
    _run_checked(
        [
            "project",
            "item-edit",
            "--id",
            item_id,
            "--field-id",
            field_id,
            "--project-id",
            project_id,
            _UPDATE_FLAGS[kind],
            str(value),
        ]
    )


def list_projects(owner: str) -> dict[str, Any]:
    return gh_json(["project", "list", "--owner", owner, "--format", "json", "--limit", str(PROJECT_LIST_LIMIT)])


def list_items(project_number: int, owner: str) -> dict[str, Any]:
    return gh_json(
        [
            "project",
            "item-list",
            str(project_number),
            "--owner",
            owner,
            "--format",
            "json",
            "--limit",
            str(ITEM_LIST_LIMIT),
        ]
    )


def auth_token() -> str | None:
    """Return the token gh is logged in with, if any."""
    if shutil.which(GH) is None:
        return None
    result = _run(["auth", "token"])
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def _parse_version(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version)[:3])


def get_version() -> str:
    """Return the installed gh version, e.g. '2.40.1'."""
    output = _run_checked(["--version"])
    match = re.search(r"gh version (\d+\.\d+\.\d+)", output)
    if not match:
        msg = f"Could not determine GitHub CLI version from: {output.strip()!r}"
        raise MigrationError(msg)
    return match.group(1)


def check_version(required: str = REQUIRED_VERSION) -> None:
    """Verify gh is installed and recent enough for the project commands.

    Raises:
        PreconditionError: If gh is missing or older than required
    """
    if shutil.which(GH) is None:
        msg = "GitHub CLI is not installed. Please install it."
        raise PreconditionError(msg)

    installed = get_version()
    if _parse_version(installed) < _parse_version(required):
        msg = f"Installed GitHub CLI version ({installed}) is older than the required version ({required})."
        raise PreconditionError(msg)
    logger.debug(f"GitHub CLI version {installed} satisfies {required}")
