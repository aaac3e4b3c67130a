"""
Field schema reconciliation between an exported project and its copy.

Snapshot values are stored by field display name. The copied project has its
own field, option and iteration identifiers, so every value is translated to
the target-side identifier before it is written.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final

from .models import (
    FieldDataType,
    FieldDefinition,
    FieldUpdate,
    ItemSnapshot,
    Iteration,
    NotFound,
    SelectOption,
    UpdateKind,
)

logger: logging.Logger = logging.getLogger(__name__)

# Identity of the item or managed by GitHub itself; cannot be set with a field update.
FIELDS_TO_IGNORE: Final[frozenset[str]] = frozenset(
    {
        "Title",
        "Assignees",
        "Labels",
        "Linked pull requests",
        "Reviewers",
        "Repository",
        "Milestone",
    }
)

_SINGLE_SELECT_TYPENAME: Final[str] = "ProjectV2SingleSelectField"
_ITERATION_TYPENAME: Final[str] = "ProjectV2IterationField"


def attribute_key(field_name: str) -> str:
    """Return the snapshot key of a field: its display name with the first character lower-cased."""
    if not field_name:
        return field_name
    return field_name[0].lower() + field_name[1:]


def is_empty_value(value: Any) -> bool:
    """Whether a snapshot value carries nothing to migrate. Zero is a value."""
    if value is None:
        return True
    if isinstance(value, str | list | dict):
        return len(value) == 0
    return False


def build_included_fields(
    target_fields: Sequence[FieldDefinition],
    ignore: Iterable[str] = FIELDS_TO_IGNORE,
) -> list[str]:
    """Return the names of the migratable target fields, in target schema order."""
    ignored = frozenset(ignore)
    included: list[str] = []
    seen: set[str] = set()
    for field_def in target_fields:
        if field_def.name in ignored or field_def.name in seen:
            continue
        seen.add(field_def.name)
        included.append(field_def.name)
    return included


def _find_option(options: Sequence[SelectOption], name: Any) -> SelectOption | None:
    for option in options:
        if option.name == name:
            return option
    return None


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _find_iteration(iterations: Sequence[Iteration], descriptor: Mapping[str, Any]) -> Iteration | None:
    # Only duration, start date and title survive the copy; ids are regenerated.
    duration = _as_int(descriptor.get("duration"))
    start_date = descriptor.get("startDate")
    title = descriptor.get("title")
    for iteration in iterations:
        if iteration.duration == duration and iteration.start_date == start_date and iteration.title == title:
            return iteration
    return None


def resolve_value(field_def: FieldDefinition, raw_value: Any) -> FieldUpdate | NotFound:
    """Translate a snapshot value into an update against the target field."""
    match field_def.data_type:
        case FieldDataType.SINGLE_SELECT:
            option = _find_option(field_def.options, raw_value)
            if option is None:
                return NotFound(f"No option named {raw_value!r} in field '{field_def.name}'")
            return FieldUpdate(field_def.id, UpdateKind.SINGLE_SELECT_OPTION_ID, option.id)
        case FieldDataType.ITERATION:
            if not isinstance(raw_value, Mapping):
                return NotFound(f"Iteration value {raw_value!r} of field '{field_def.name}' is not a descriptor")
            iteration = _find_iteration(field_def.iterations, raw_value)
            if iteration is None:
                return NotFound(
                    f"No iteration matching title={raw_value.get('title')!r}, "
                    f"startDate={raw_value.get('startDate')!r}, duration={raw_value.get('duration')!r} "
                    f"in field '{field_def.name}'"
                )
            return FieldUpdate(field_def.id, UpdateKind.ITERATION_ID, iteration.id)
        case FieldDataType.NUMBER:
            return FieldUpdate(field_def.id, UpdateKind.NUMBER, raw_value)
        case FieldDataType.DATE:
            return FieldUpdate(field_def.id, UpdateKind.DATE, raw_value)
        case FieldDataType.TEXT | FieldDataType.OTHER:
            text = raw_value if isinstance(raw_value, str) else str(raw_value)
            return FieldUpdate(field_def.id, UpdateKind.TEXT, text)


def _parse_field_node(node: Mapping[str, Any]) -> FieldDefinition:
    typename = node.get("__typename") or node.get("type")
    data_type = FieldDataType.parse(node.get("dataType"))

    if typename == _SINGLE_SELECT_TYPENAME or data_type is FieldDataType.SINGLE_SELECT:
        options = tuple(
            SelectOption(id=str(option["id"]), name=str(option["name"])) for option in node.get("options") or []
        )
        return FieldDefinition(
            id=str(node["id"]), name=str(node["name"]), data_type=FieldDataType.SINGLE_SELECT, options=options
        )

    if typename == _ITERATION_TYPENAME or data_type is FieldDataType.ITERATION:
        configuration = node.get("configuration") or {}
        raw_iterations = [*(configuration.get("iterations") or []), *(configuration.get("completedIterations") or [])]
        iterations = tuple(
            Iteration(
                id=str(iteration["id"]),
                title=str(iteration.get("title", "")),
                start_date=str(iteration.get("startDate", "")),
                duration=int(iteration.get("duration", 0)),
            )
            for iteration in raw_iterations
        )
        return FieldDefinition(
            id=str(node["id"]), name=str(node["name"]), data_type=FieldDataType.ITERATION, iterations=iterations
        )

    return FieldDefinition(id=str(node["id"]), name=str(node["name"]), data_type=data_type)


def _field_nodes(payload: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    if "fields" in payload and isinstance(payload["fields"], list):
        return payload["fields"]

    data = payload.get("data", payload)
    for owner_key in ("organization", "user"):
        owner = data.get(owner_key)
        if not owner:
            continue
        project = owner.get("projectV2") or {}
        return list((project.get("fields") or {}).get("nodes") or [])

    msg = "Unrecognized field list payload: expected 'fields' or a GraphQL projectV2 response"
    raise ValueError(msg)


def parse_field_definitions(payload: Mapping[str, Any]) -> list[FieldDefinition]:
    """Parse a field list (GraphQL response or flat `fields` list) into definitions."""
    definitions: list[FieldDefinition] = []
    for node in _field_nodes(payload):
        # Empty nodes are field types the query has no fragment for.
        if not node or "id" not in node or "name" not in node:
            continue
        definitions.append(_parse_field_node(node))
    logger.debug(f"Parsed {len(definitions)} field definitions")
    return definitions


def parse_items(payload: Mapping[str, Any]) -> list[ItemSnapshot]:
    """Parse the `gh project item-list --format json` output into item snapshots."""
    items: list[ItemSnapshot] = []
    for raw_item in payload.get("items") or []:
        content = raw_item.get("content") or {}
        attribute_values = {key: value for key, value in raw_item.items() if key not in ("content", "repository")}
        items.append(
            ItemSnapshot(
                content_url=content.get("url") or None,
                repository=raw_item.get("repository"),
                attribute_values=attribute_values,
                content_type=content.get("type"),
            )
        )
    return items
