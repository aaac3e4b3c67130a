"""Data models for migrating GitHub projects between organizations.

Snapshot models are parsed from the JSON files written by the export step and
are never mutated. Field definitions exist twice per migration: the source-side
schema used to read snapshot values and the target-side schema fetched from the
freshly copied project. The two are only ever matched by field name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FieldDataType(Enum):
    """Field data types the reconciler knows how to translate."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    SINGLE_SELECT = "SINGLE_SELECT"
    ITERATION = "ITERATION"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: str | None) -> FieldDataType:
        """Map a GraphQL `ProjectV2FieldType` name to a data type, defaulting to OTHER."""
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.OTHER


class UpdateKind(Enum):
    """Value kinds accepted by a project item field update."""

    SINGLE_SELECT_OPTION_ID = "singleSelectOptionId"
    ITERATION_ID = "iterationId"
    NUMBER = "number"
    DATE = "date"
    TEXT = "text"


class FieldOutcome(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    NOT_FOUND = "notFound"
    FAILED = "failed"


class ProjectState(Enum):
    """Terminal states of a single project migration."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SelectOption:
    id: str
    name: str


@dataclass(frozen=True)
class Iteration:
    id: str
    title: str
    start_date: str
    duration: int


@dataclass(frozen=True)
class FieldDefinition:
    """A named, typed column of a project."""

    id: str
    name: str
    data_type: FieldDataType
    options: tuple[SelectOption, ...] = ()
    iterations: tuple[Iteration, ...] = ()


@dataclass(frozen=True)
class ItemSnapshot:
    """A single item of an exported project.

    attribute_values holds the per-field values keyed the way the export
    serializes them: the field display name with its first character lower-cased.
    """

    content_url: str | None
    repository: str | None
    attribute_values: dict[str, Any] = field(default_factory=dict)
    content_type: str | None = None


@dataclass(frozen=True)
class ProjectSnapshot:
    """A project from the exported project list, with its items once loaded."""

    number: int
    title: str
    owner: str
    items: tuple[ItemSnapshot, ...] = ()
    fields: tuple[FieldDefinition, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectSnapshot:
        owner = data.get("owner") or {}
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            owner=str(owner.get("login") or "") if isinstance(owner, dict) else str(owner),
        )


@dataclass(frozen=True)
class CopyOutput:
    """Identifiers of a project created by `gh project copy`."""

    number: int
    id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CopyOutput:
        return cls(number=int(data["number"]), id=str(data["id"]))


@dataclass(frozen=True)
class FieldUpdate:
    """A translated field value, addressed with target-side identifiers."""

    field_id: str
    kind: UpdateKind
    value: str | int | float


@dataclass(frozen=True)
class NotFound:
    """A source value with no counterpart in the target schema."""

    reason: str


@dataclass
class ItemOutcome:
    item_url: str | None
    added: bool = False
    field_outcomes: dict[str, FieldOutcome] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemUrl": self.item_url,
            "added": self.added,
            "fieldOutcomes": {name: outcome.value for name, outcome in self.field_outcomes.items()},
        }


@dataclass
class MigrationResult:
    """Result of migrating one project. Built up while items are processed."""

    source_project_number: int
    state: ProjectState = ProjectState.COMPLETED
    new_project_number: int | None = None
    new_project_id: str | None = None
    items: list[ItemOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def items_added(self) -> int:
        return sum(1 for item in self.items if item.added)

    @property
    def fields_applied(self) -> int:
        return sum(
            1 for item in self.items for outcome in item.field_outcomes.values() if outcome is FieldOutcome.APPLIED
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceProjectNumber": self.source_project_number,
            "state": self.state.value,
            "newProjectNumber": self.new_project_number,
            "newProjectId": self.new_project_id,
            "items": [item.to_dict() for item in self.items],
            "errors": list(self.errors),
        }
