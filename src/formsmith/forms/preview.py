"""Map form documents to input controls and check submitted values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .document_model import Field, FieldType, FormDocument

__all__ = [
    "ControlSpec",
    "SubmissionIssue",
    "describe_controls",
    "collect_submission",
    "validate_submission",
]


@dataclass(slots=True, frozen=True)
class ControlSpec:
    """Presentation-neutral description of one rendered input."""

    field_id: str
    kind: str
    name: str
    label: str
    placeholder: str | None = None
    choices: tuple[tuple[str, str], ...] = ()
    default: Any = None
    required: bool = False
    disabled: bool = False
    width: str = "full"


@dataclass(slots=True, frozen=True)
class SubmissionIssue:
    field_id: str
    name: str
    message: str


def describe_controls(document: FormDocument) -> tuple[ControlSpec, ...]:
    """Return one :class:`ControlSpec` per field, in field order."""

    return tuple(_describe_field(item) for item in document.fields)


def _describe_field(item: Field) -> ControlSpec:
    choices = tuple((option.value, option.label) for option in item.options or ())
    default: Any = None
    if item.type is FieldType.SELECT:
        default = choices[0][0] if choices else ""
    elif item.type is FieldType.CHECKBOX:
        default = False
    elif item.type is FieldType.TEXTAREA:
        default = ""
    return ControlSpec(
        field_id=item.id,
        kind=item.type.value,
        name=item.control_name,
        label=item.label,
        placeholder=item.placeholder if item.type.accepts_placeholder else None,
        choices=choices,
        default=default,
        required=item.is_required,
        disabled=item.disabled,
        width=item.width,
    )


def collect_submission(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold submitted ``(key, value)`` pairs into a flat payload.

    A key seen more than once collects its values into a list, in order.
    """

    payload: dict[str, Any] = {}
    for key, value in pairs:
        if key not in payload:
            payload[key] = value
            continue
        current = payload[key]
        if isinstance(current, list):
            current.append(value)
        else:
            payload[key] = [current, value]
    return payload


def validate_submission(document: FormDocument, payload: Mapping[str, Any]) -> list[SubmissionIssue]:
    """Check ``payload`` against each enabled field's validation constraints."""

    issues: list[SubmissionIssue] = []
    for item in document.fields:
        if item.disabled:
            continue
        value = payload.get(item.control_name)
        for message in _field_messages(item, value):
            issues.append(SubmissionIssue(field_id=item.id, name=item.control_name, message=message))
    return issues


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not value
    return False


def _field_messages(item: Field, value: Any) -> list[str]:
    rules = item.validation
    if _is_blank(value):
        return [f"{item.label or item.control_name} is required"] if item.is_required else []
    if rules is None:
        return []

    messages: list[str] = []
    values = value if isinstance(value, list) else [value]
    for entry in values:
        if item.type is FieldType.NUMBER:
            try:
                number = float(entry)
            except (TypeError, ValueError):
                messages.append(f"{entry!r} is not a number")
                continue
            if rules.min is not None and number < rules.min:
                messages.append(f"must be at least {rules.min:g}")
            if rules.max is not None and number > rules.max:
                messages.append(f"must be at most {rules.max:g}")
            continue

        text = str(entry)
        if rules.min_length is not None and len(text) < rules.min_length:
            messages.append(f"must be at least {rules.min_length} characters")
        if rules.max_length is not None and len(text) > rules.max_length:
            messages.append(f"must be at most {rules.max_length} characters")
        if rules.pattern:
            try:
                matched = re.fullmatch(rules.pattern, text) is not None
            except re.error:
                messages.append(f"has an invalid pattern {rules.pattern!r}")
                continue
            if not matched:
                messages.append(f"does not match {rules.pattern!r}")
    return messages
