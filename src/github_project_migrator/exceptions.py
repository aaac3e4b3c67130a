"""
Custom exception classes for the GitHub project migration tool.
"""

from __future__ import annotations

from collections.abc import Sequence


class MigrationError(Exception):
    """Base exception for migration errors."""


class PreconditionError(MigrationError):
    """Raised when the run cannot start safely (missing inputs, duplicate work)."""


class GhCommandError(MigrationError):
    """Raised when a `gh` invocation exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str) -> None:
        self.command: list[str] = list(command)
        self.returncode: int = returncode
        self.stderr: str = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.command)}\n{stderr.strip()}")
