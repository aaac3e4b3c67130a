"""
GitHub Project Migrator

Migrates GitHub projects and their items from one organization to another,
preserving field values and remapping repository references.
"""

from __future__ import annotations

from .cli import main
from .config import MigrationConfig
from .exceptions import GhCommandError, MigrationError, PreconditionError
from .migrator import ProjectMigrator
from .repository_mapping import RepositoryMap
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "GhCommandError",
    "MigrationConfig",
    "MigrationError",
    "PreconditionError",
    "ProjectMigrator",
    "RepositoryMap",
    "main",
    "setup_logging",
]
