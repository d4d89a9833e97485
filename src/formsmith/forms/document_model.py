"""Dataclasses describing form documents, their fields and choice options."""

from __future__ import annotations

import copy
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

__all__ = [
    "FieldType",
    "CHOICE_FIELD_TYPES",
    "FieldOption",
    "FieldValidation",
    "FieldStyling",
    "GlobalStyle",
    "Field",
    "FormDocument",
    "DEFAULT_SUBMIT_LABEL",
    "DEFAULT_LAYOUT",
    "DEFAULT_WIDTH",
    "LAYOUTS",
    "WIDTHS",
    "derive_option_value",
    "new_id",
    "utcnow",
    "parse_timestamp",
    "format_timestamp",
]

DEFAULT_SUBMIT_LABEL = "Submit"
DEFAULT_LAYOUT = "vertical"
DEFAULT_WIDTH = "full"
LAYOUTS: tuple[str, ...] = ("vertical", "horizontal")
WIDTHS: tuple[str, ...] = ("full", "half", "third")
_WHITESPACE_RE = re.compile(r"\s+")


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def derive_option_value(label: str) -> str:
    """Return the submission value for an option label.

    The label is lowercased and every run of whitespace becomes a single
    underscore, so ``"Very  Likely"`` maps to ``"very_likely"``.
    """

    return _WHITESPACE_RE.sub("_", label.lower())


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class FieldType(str, Enum):
    """Closed set of input kinds a field can render as."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"

    @property
    def has_options(self) -> bool:
        return self in CHOICE_FIELD_TYPES

    @property
    def accepts_placeholder(self) -> bool:
        return self in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.NUMBER)


CHOICE_FIELD_TYPES: frozenset[FieldType] = frozenset({FieldType.SELECT, FieldType.RADIO})


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_number(value: Any) -> float | int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass(slots=True)
class FieldOption:
    """One selectable choice of a ``select`` or ``radio`` field."""

    id: str
    label: str
    value: str

    @classmethod
    def from_label(cls, label: str, *, option_id: str | None = None) -> "FieldOption":
        return cls(id=option_id or new_id(), label=label, value=derive_option_value(label))

    def relabel(self, label: str) -> "FieldOption":
        """Return a copy carrying ``label`` and the value derived from it."""

        return FieldOption(id=self.id, label=label, value=derive_option_value(label))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "value": self.value}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FieldOption":
        label = str(payload.get("label") or "")
        value = payload.get("value")
        return cls(
            id=str(payload.get("id") or new_id()),
            label=label,
            value=str(value) if value is not None else derive_option_value(label),
        )


@dataclass(slots=True)
class FieldValidation:
    """Constraint set attached to a field; every entry is optional."""

    required: Optional[bool] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

    @property
    def is_required(self) -> bool:
        return bool(self.required)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "required": self.required,
                "minLength": self.min_length,
                "maxLength": self.max_length,
                "min": self.min,
                "max": self.max,
                "pattern": self.pattern,
            }
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FieldValidation":
        required = payload.get("required")
        return cls(
            required=bool(required) if required is not None else None,
            min_length=_optional_int(payload.get("minLength", payload.get("min_length"))),
            max_length=_optional_int(payload.get("maxLength", payload.get("max_length"))),
            min=_optional_number(payload.get("min")),
            max=_optional_number(payload.get("max")),
            pattern=_optional_str(payload.get("pattern")),
        )


@dataclass(slots=True)
class FieldStyling:
    """Layout hints for a single field."""

    width: Optional[str] = None
    class_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"width": self.width, "className": self.class_name})

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FieldStyling":
        return cls(
            width=_optional_str(payload.get("width")),
            class_name=_optional_str(payload.get("className", payload.get("class_name"))),
        )


@dataclass(slots=True)
class GlobalStyle:
    """Form-wide presentation settings."""

    submit_label: Optional[str] = None
    layout: Optional[str] = None
    class_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {"submitLabel": self.submit_label, "layout": self.layout, "className": self.class_name}
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GlobalStyle":
        return cls(
            submit_label=_optional_str(payload.get("submitLabel", payload.get("submit_label"))),
            layout=_optional_str(payload.get("layout")),
            class_name=_optional_str(payload.get("className", payload.get("class_name"))),
        )


def coerce_field_type(value: Any) -> FieldType:
    """Return ``value`` as a :class:`FieldType`, raising ``ValueError`` if unknown."""

    if isinstance(value, FieldType):
        return value
    return FieldType(str(value).strip().lower())


def normalize_options(field_type: FieldType, options: Iterable[Any] | None) -> list[FieldOption] | None:
    if not field_type.has_options:
        return None
    result: list[FieldOption] = []
    for option in options or ():
        if isinstance(option, FieldOption):
            result.append(copy.deepcopy(option))
        elif isinstance(option, Mapping):
            result.append(FieldOption.from_dict(option))
    return result


@dataclass(slots=True)
class Field:
    """One input definition owned by a :class:`FormDocument`."""

    id: str
    name: str
    label: str
    type: FieldType = FieldType.TEXT
    placeholder: Optional[str] = None
    options: Optional[list[FieldOption]] = None
    validation: Optional[FieldValidation] = None
    styling: Optional[FieldStyling] = None
    disabled: bool = False

    def __post_init__(self) -> None:
        self.type = coerce_field_type(self.type)
        self.options = normalize_options(self.type, self.options)
        if isinstance(self.validation, Mapping):
            self.validation = FieldValidation.from_dict(self.validation)
        if isinstance(self.styling, Mapping):
            self.styling = FieldStyling.from_dict(self.styling)

    @property
    def control_name(self) -> str:
        """Submission key used when rendering, falling back to the field id."""

        return self.name or self.id

    @property
    def is_required(self) -> bool:
        return self.validation is not None and self.validation.is_required

    @property
    def width(self) -> str:
        if self.styling is not None and self.styling.width:
            return self.styling.width
        return DEFAULT_WIDTH

    def find_option(self, option_id: str) -> FieldOption | None:
        for option in self.options or ():
            if option.id == option_id:
                return option
        return None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "type": self.type.value,
            "disabled": self.disabled,
        }
        if self.placeholder is not None:
            payload["placeholder"] = self.placeholder
        if self.options is not None:
            payload["options"] = [option.to_dict() for option in self.options]
        if self.validation is not None:
            payload["validation"] = self.validation.to_dict()
        if self.styling is not None:
            payload["styling"] = self.styling.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Field":
        validation = payload.get("validation")
        styling = payload.get("styling")
        return cls(
            id=str(payload.get("id") or new_id()),
            name=str(payload.get("name") or ""),
            label=str(payload.get("label") or ""),
            type=coerce_field_type(payload.get("type") or FieldType.TEXT),
            placeholder=_optional_str(payload.get("placeholder")),
            options=payload.get("options"),
            validation=FieldValidation.from_dict(validation) if isinstance(validation, Mapping) else None,
            styling=FieldStyling.from_dict(styling) if isinstance(styling, Mapping) else None,
            disabled=bool(payload.get("disabled", False)),
        )


def normalize_fields(fields: Iterable[Any] | None) -> list[Field]:
    """Return a fresh, order-preserving list of fields; ``None`` becomes ``[]``."""

    result: list[Field] = []
    for item in fields or ():
        if isinstance(item, Field):
            result.append(copy.deepcopy(item))
        elif isinstance(item, Mapping):
            result.append(Field.from_dict(item))
        else:
            raise TypeError(f"Cannot interpret {type(item).__name__} as a form field")
    return result


@dataclass(slots=True)
class FormDocument:
    """Root description of one form: metadata plus its ordered fields."""

    id: str
    title: str
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    disabled: bool = False
    slug: Optional[str] = None
    global_style: Optional[GlobalStyle] = None
    fields: list[Field] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fields = normalize_fields(self.fields)
        if isinstance(self.global_style, Mapping):
            self.global_style = GlobalStyle.from_dict(self.global_style)
        if self.updated_at is None or self.updated_at < self.created_at:
            self.updated_at = self.created_at

    # ------------------------------------------------------------------
    # Read-time defaults
    # ------------------------------------------------------------------
    @property
    def submit_label(self) -> str:
        if self.global_style is not None and self.global_style.submit_label:
            return self.global_style.submit_label
        return DEFAULT_SUBMIT_LABEL

    @property
    def layout(self) -> str:
        if self.global_style is not None and self.global_style.layout:
            return self.global_style.layout
        return DEFAULT_LAYOUT

    def find_field(self, field_id: str) -> Field | None:
        for item in self.fields:
            if item.id == field_id:
                return item
        return None

    def field_ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self.fields)

    def copy(self) -> "FormDocument":
        """Return a fully independent deep copy of this document."""

        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at or self.created_at),
            "disabled": self.disabled,
            "fields": [item.to_dict() for item in self.fields],
        }
        if self.slug is not None:
            payload["slug"] = self.slug
        if self.global_style is not None:
            payload["globalStyle"] = self.global_style.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FormDocument":
        created_at = parse_timestamp(payload.get("createdAt")) or utcnow()
        style = payload.get("globalStyle")
        return cls(
            id=str(payload.get("id") or new_id()),
            title=str(payload.get("title") or ""),
            description=str(payload.get("description") or ""),
            created_at=created_at,
            updated_at=parse_timestamp(payload.get("updatedAt")),
            disabled=bool(payload.get("disabled", False)),
            slug=_optional_str(payload.get("slug")),
            global_style=GlobalStyle.from_dict(style) if isinstance(style, Mapping) else None,
            fields=payload.get("fields") or [],
        )
