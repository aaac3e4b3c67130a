"""
Repository name mapping between the source and target organizations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

from .exceptions import PreconditionError

if TYPE_CHECKING:
    from .config import MigrationConfig

logger: logging.Logger = logging.getLogger(__name__)


class RepositoryMap:
    """Translates source repository names to target repository names.

    Names without an entry resolve to themselves.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: Mapping[str, str] = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> RepositoryMap:
        """Parse `sourceRepo,targetRepo` lines. The first entry for a source repo wins."""
        entries: dict[str, str] = {}
        for line_number, raw_line in enumerate(lines, start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "," not in line:
                msg = f"Invalid mapping on line {line_number}: {raw_line.rstrip()!r} (expected 'sourceRepo,targetRepo')"
                raise ValueError(msg)
            source, target = (part.strip() for part in line.split(",", 1))
            if not source or not target:
                msg = f"Invalid mapping on line {line_number}: {raw_line.rstrip()!r} (empty repository name)"
                raise ValueError(msg)
            entries.setdefault(source, target)
        return cls(entries)

    @classmethod
    def from_file(cls, path: Path) -> RepositoryMap:
        with path.open(encoding="utf-8") as f:
            return cls.from_lines(f)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source_repo: object) -> bool:
        return source_repo in self._entries

    def resolve(self, source_repo: str, *, ignore_mapping: bool = False) -> str:
        """Return the target repository name for source_repo."""
        if ignore_mapping:
            return source_repo
        return self._entries.get(source_repo, source_repo)

    def unmapped(self, repositories: Iterable[str]) -> list[str]:
        """Return the referenced repositories that have no mapping entry, sorted."""
        return sorted({repo for repo in repositories if repo and repo not in self._entries})


def load_repository_map(config: MigrationConfig) -> RepositoryMap:
    """Load the mapping file named by the configuration.

    Raises:
        PreconditionError: If the mapping is required but the file is missing
    """
    if config.ignore_mapping:
        logger.info("Ignoring mapping file, repository names are kept as-is")
        return RepositoryMap()

    if not config.mapping_file.is_file():
        msg = (
            f"Mapping file '{config.mapping_file}' is not present, please provide the mapping file "
            "or specify '-n' to use the same repository names."
        )
        raise PreconditionError(msg)

    try:
        repository_map = RepositoryMap.from_file(config.mapping_file)
    except ValueError as e:
        msg = f"Failed to read mapping file '{config.mapping_file}': {e}"
        raise PreconditionError(msg) from e

    logger.info(f"Loaded {len(repository_map)} repository mappings from {config.mapping_file}")
    return repository_map
