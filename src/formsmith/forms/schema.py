"""JSON Schema describing the persisted form document shape."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from jsonschema import Draft7Validator

from .document_model import LAYOUTS, WIDTHS, FieldType

__all__ = ["FORM_DOCUMENT_SCHEMA", "SchemaIssue", "validate_form_payload", "MAX_SCHEMA_ERRORS"]

MAX_SCHEMA_ERRORS = 25

_OPTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "label", "value"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "label": {"type": "string"},
        "value": {"type": "string"},
    },
}

_VALIDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "required": {"type": "boolean"},
        "minLength": {"type": "integer", "minimum": 0},
        "maxLength": {"type": "integer", "minimum": 0},
        "min": {"type": "number"},
        "max": {"type": "number"},
        "pattern": {"type": "string"},
    },
}

_FIELD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "type"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "label": {"type": "string"},
        "type": {"enum": [member.value for member in FieldType]},
        "placeholder": {"type": ["string", "null"]},
        "options": {"type": ["array", "null"], "items": _OPTION_SCHEMA},
        "validation": {**_VALIDATION_SCHEMA, "type": ["object", "null"]},
        "styling": {
            "type": ["object", "null"],
            "properties": {
                "width": {"enum": list(WIDTHS)},
                "className": {"type": "string"},
            },
        },
        "disabled": {"type": "boolean"},
    },
}

FORM_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "FormDocument",
    "type": "object",
    "required": ["id", "title"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "title": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "createdAt": {"type": "string"},
        "updatedAt": {"type": ["string", "null"]},
        "disabled": {"type": "boolean"},
        "slug": {"type": ["string", "null"]},
        "globalStyle": {
            "type": ["object", "null"],
            "properties": {
                "submitLabel": {"type": "string"},
                "layout": {"enum": list(LAYOUTS)},
                "className": {"type": "string"},
            },
        },
        "fields": {"type": ["array", "null"], "items": _FIELD_SCHEMA},
    },
}

_VALIDATOR = Draft7Validator(FORM_DOCUMENT_SCHEMA)


@dataclass(slots=True)
class SchemaIssue:
    """A single schema violation found in a form payload."""

    message: str
    path: str = ""

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


def validate_form_payload(payload: Any) -> list[SchemaIssue]:
    """Return the schema violations of ``payload`` (empty when valid)."""

    issues: list[SchemaIssue] = []
    for error in sorted(_VALIDATOR.iter_errors(payload), key=lambda item: [str(part) for part in item.absolute_path]):
        issues.append(SchemaIssue(message=error.message, path=_format_schema_path(error.absolute_path)))
        if len(issues) >= MAX_SCHEMA_ERRORS:
            issues.append(SchemaIssue(message="Too many validation errors; stopping early."))
            break
    return issues


def _format_schema_path(path: Sequence[Any]) -> str:
    components: list[str] = []
    for segment in path:
        if isinstance(segment, int):
            if components:
                components[-1] = f"{components[-1]}[{segment}]"
            else:
                components.append(f"[{segment}]")
        else:
            components.append(str(segment))
    return ".".join(filter(None, components))
