"""Import and export helpers for form definition files (JSON and YAML)."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..forms.document_model import FormDocument
from ..forms.schema import SchemaIssue, validate_form_payload

__all__ = [
    "ImporterError",
    "ImportResult",
    "ImportHandler",
    "FormImporter",
    "JSONImportHandler",
    "YAMLImportHandler",
    "export_form",
]

_LOGGER = logging.getLogger(__name__)
_JSON_EXTENSIONS = (".json",)
_YAML_EXTENSIONS = (".yaml", ".yml")


class ImporterError(RuntimeError):
    """Raised when a form definition file cannot be imported or exported."""

    def __init__(self, message: str, issues: Sequence[SchemaIssue] = ()) -> None:
        super().__init__(message)
        self.issues = tuple(issues)


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext:
        return ext
    if not ext.startswith("."):
        return f".{ext}"
    return ext


@dataclass(slots=True)
class ImportResult:
    """Documents read from one file."""

    documents: list[FormDocument] = field(default_factory=list)
    source: Path | None = None
    format: str = "json"


class ImportHandler(Protocol):
    """Protocol implemented by concrete import handlers."""

    name: str
    extensions: tuple[str, ...]

    def supports(self, path: Path) -> bool:
        ...

    def import_file(self, path: Path) -> ImportResult:
        ...


def _create_yaml() -> YAML:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    parser.default_flow_style = False
    parser.width = 4096
    return parser


def _documents_from_payload(data: Any, *, source: Path) -> list[FormDocument]:
    """Accept a single form object, a list of forms, or ``{"forms": [...]}``."""

    if isinstance(data, Mapping) and isinstance(data.get("forms"), list):
        entries = data["forms"]
    elif isinstance(data, list):
        entries = data
    elif isinstance(data, Mapping):
        entries = [data]
    else:
        raise ImporterError(f"{source.name} does not contain a form definition.")

    documents: list[FormDocument] = []
    for index, entry in enumerate(entries):
        issues = validate_form_payload(entry)
        if issues:
            summary = "; ".join(str(issue) for issue in issues)
            raise ImporterError(f"Form #{index} in {source.name} is invalid: {summary}", issues)
        documents.append(FormDocument.from_dict(entry))
    return documents


def _stringify_timestamps(value: Any) -> Any:
    """Turn datetimes produced by unquoted YAML timestamps back into ISO strings."""

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {key: _stringify_timestamps(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_timestamps(item) for item in value]
    return value


class JSONImportHandler:
    name: str = "json"
    extensions: tuple[str, ...] = _JSON_EXTENSIONS

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def import_file(self, path: Path) -> ImportResult:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ImporterError(f"{path.name} is not valid JSON: {exc.msg} (line {exc.lineno})") from exc
        return ImportResult(documents=_documents_from_payload(data, source=path), source=path, format=self.name)


class YAMLImportHandler:
    name: str = "yaml"
    extensions: tuple[str, ...] = _YAML_EXTENSIONS

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def import_file(self, path: Path) -> ImportResult:
        try:
            data = _create_yaml().load(path.read_text(encoding="utf-8"))
        except YAMLError as exc:
            raise ImporterError(f"{path.name} is not valid YAML: {exc}") from exc
        data = _stringify_timestamps(data)
        return ImportResult(documents=_documents_from_payload(data, source=path), source=path, format=self.name)


class FormImporter:
    """Registry-driven facade choosing a handler by file extension."""

    def __init__(self, handlers: Sequence[ImportHandler] | None = None) -> None:
        registry = list(handlers or [])
        if not registry:
            registry.extend([JSONImportHandler(), YAMLImportHandler()])
        self._handlers: list[ImportHandler] = registry

    def register_handler(self, handler: ImportHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def handlers(self) -> tuple[ImportHandler, ...]:
        return tuple(self._handlers)

    def supported_extensions(self) -> tuple[str, ...]:
        seen: list[str] = []
        for handler in self._handlers:
            for extension in handler.extensions:
                normalized = _normalize_extension(extension)
                if normalized and normalized not in seen:
                    seen.append(normalized)
        return tuple(seen)

    def import_file(self, path: Path | str) -> ImportResult:
        target = Path(path)
        if not target.exists():
            raise FileNotFoundError(target)
        handler = self._select_handler(target)
        if handler is None:
            raise ImporterError(f"No import handler registered for '{target.suffix or target}'.")
        result = handler.import_file(target)
        _LOGGER.debug("Imported %d form(s) from %s via %s", len(result.documents), target, handler.name)
        return result

    def _select_handler(self, path: Path) -> ImportHandler | None:
        for handler in self._handlers:
            if handler.supports(path):
                return handler
        return None


def export_form(document: FormDocument, path: Path | str) -> Path:
    """Write ``document`` as JSON or YAML depending on the target extension."""

    target = Path(path)
    suffix = target.suffix.lower()
    payload = document.to_dict()
    if suffix in _JSON_EXTENSIONS:
        body = json.dumps(payload, indent=2)
    elif suffix in _YAML_EXTENSIONS:
        buffer = io.StringIO()
        _create_yaml().dump(payload, buffer)
        body = buffer.getvalue()
    else:
        raise ImporterError(f"Cannot export forms as '{suffix or target.name}'.")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(body, encoding="utf-8")
    _LOGGER.debug("Exported form %s to %s", document.id, target)
    return target
