"""Append-only submission logs, one JSON file per form."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Mapping

from ..forms.document_model import format_timestamp, new_id, parse_timestamp, utcnow

__all__ = ["ResponseRecord", "ResponseLog"]

LOGGER = logging.getLogger(__name__)
_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(slots=True)
class ResponseRecord:
    """One captured submission."""

    id: str
    submitted_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "submittedAt": format_timestamp(self.submitted_at),
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResponseRecord | None":
        submitted_at = parse_timestamp(data.get("submittedAt"))
        payload = data.get("payload")
        if submitted_at is None or not isinstance(payload, Mapping):
            return None
        return cls(id=str(data.get("id") or new_id()), submitted_at=submitted_at, payload=dict(payload))


class ResponseLog:
    """Stores submissions for each form under ``<directory>/<form_id>.json``.

    Used by the consumption side only; the store and editing sessions never
    touch it. Failures are logged and reported through return values.
    """

    def __init__(
        self,
        directory: Path | str,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._directory = Path(directory).expanduser()
        self._clock = clock or utcnow
        self._id_factory = id_factory or new_id

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, form_id: str) -> Path:
        return self._directory / f"{_SAFE_NAME_RE.sub('_', form_id)}.json"

    def record(self, form_id: str, payload: Mapping[str, Any]) -> ResponseRecord | None:
        """Append a timestamped submission for ``form_id``."""

        record = ResponseRecord(id=self._id_factory(), submitted_at=self._clock(), payload=dict(payload))
        entries = [entry.to_dict() for entry in self.responses(form_id)]
        entries.append(record.to_dict())
        target = self.path_for(form_id)
        try:
            body = json.dumps(entries, indent=2)
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = target.with_suffix(".tmp")
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(target)
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.warning("Failed to save response for form %s: %s", form_id, exc)
            return None
        LOGGER.debug("Recorded response %s for form %s (%d total)", record.id, form_id, len(entries))
        return record

    def responses(self, form_id: str) -> list[ResponseRecord]:
        target = self.path_for(form_id)
        if not target.exists():
            return []
        try:
            data = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Failed to load responses for form %s: %s", form_id, exc)
            return []
        if not isinstance(data, list):
            LOGGER.warning("Response log %s is not a list", target)
            return []
        records: list[ResponseRecord] = []
        for entry in data:
            if not isinstance(entry, Mapping):
                continue
            record = ResponseRecord.from_dict(entry)
            if record is not None:
                records.append(record)
        return records

    def count(self, form_id: str) -> int:
        return len(self.responses(form_id))
