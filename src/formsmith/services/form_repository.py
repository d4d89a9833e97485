"""JSON file persistence for the form collection."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..forms.document_model import FormDocument
from ..forms.schema import validate_form_payload

__all__ = ["FormRepository", "FORMS_FILENAME"]

LOGGER = logging.getLogger(__name__)
FORMS_FILENAME = "forms_v1.json"
_PAYLOAD_VERSION = 1


class FormRepository:
    """Persistence adapter storing every :class:`FormDocument` in one file.

    The file holds ``{"version": 1, "forms": [...]}``. Loading never raises:
    a missing, unreadable or malformed file yields an empty collection, and
    entries that fail schema validation are skipped. Saving writes through a
    temporary file and reports failure by returning False.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[FormDocument]:
        payload = self._read_payload()
        if payload is None:
            return []

        entries = payload.get("forms")
        if not isinstance(entries, list):
            LOGGER.warning("Forms file %s has no 'forms' list; starting empty", self._path)
            return []

        documents: list[FormDocument] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            issues = validate_form_payload(entry)
            if issues:
                LOGGER.warning(
                    "Skipping form #%d in %s: %s", index, self._path, "; ".join(str(i) for i in issues)
                )
                continue
            try:
                document = FormDocument.from_dict(entry)
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Skipping form #%d in %s: %s", index, self._path, exc)
                continue
            if document.id in seen:
                LOGGER.warning("Skipping duplicate form id %s in %s", document.id, self._path)
                continue
            seen.add(document.id)
            documents.append(document)

        LOGGER.debug("Loaded %d form(s) from %s", len(documents), self._path)
        return documents

    def save(self, documents: Sequence[FormDocument]) -> bool:
        try:
            payload = {
                "version": _PAYLOAD_VERSION,
                "forms": [document.to_dict() for document in documents],
            }
            body = json.dumps(payload, indent=2, sort_keys=True)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(self._path)
        except (AttributeError, OSError, TypeError, ValueError) as exc:
            LOGGER.warning("Failed to save forms to %s: %s", self._path, exc)
            return False
        LOGGER.debug("Saved %d form(s) to %s", len(documents), self._path)
        return True

    def _read_payload(self) -> Mapping[str, Any] | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Unable to read forms file %s: %s", self._path, exc)
            return None
        except json.JSONDecodeError as exc:
            LOGGER.warning("Forms file %s is not valid JSON: %s", self._path, exc)
            return None
        if isinstance(data, list):
            # Bare list written by older builds.
            return {"forms": data}
        if not isinstance(data, Mapping):
            LOGGER.warning("Forms file %s does not contain an object", self._path)
            return None
        return data
