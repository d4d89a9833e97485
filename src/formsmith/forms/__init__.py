"""Form document model, schema and preview helpers."""

from .document_model import (
    CHOICE_FIELD_TYPES,
    Field,
    FieldOption,
    FieldStyling,
    FieldType,
    FieldValidation,
    FormDocument,
    GlobalStyle,
)

__all__ = [
    "CHOICE_FIELD_TYPES",
    "Field",
    "FieldOption",
    "FieldStyling",
    "FieldType",
    "FieldValidation",
    "FormDocument",
    "GlobalStyle",
]
