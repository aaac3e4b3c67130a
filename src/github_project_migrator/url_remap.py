"""Rewrite issue and pull request URLs to point at the target organization."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .repository_mapping import RepositoryMap


def split_owner_repo(url: str) -> tuple[str, str]:
    """Return the (owner, repo) segments of https://<host>/<owner>/<repo>/...

    Raises:
        ValueError: If the URL has no owner/repo segments
    """
    parts = url.split("/")
    if len(parts) < 5 or not parts[3] or not parts[4]:
        msg = f"Cannot extract organization and repository from URL: {url}"
        raise ValueError(msg)
    return parts[3], parts[4]


def remap_url(
    issue_url: str,
    target_org: str,
    repository_map: RepositoryMap,
    *,
    ignore_mapping: bool = False,
) -> str:
    """Replace the organization and repository segments of an issue/PR URL.

    Example:
        https://github.com/orgA/repoA/issues/7 -> https://github.com/orgB/repoB/issues/7
        given target_org "orgB" and a mapping repoA -> repoB.
    """
    _, original_repo = split_owner_repo(issue_url)
    parts = issue_url.split("/")
    parts[3] = target_org
    parts[4] = repository_map.resolve(original_repo, ignore_mapping=ignore_mapping)
    return "/".join(parts)
