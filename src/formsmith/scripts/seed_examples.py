"""Seed the sample forms used for demos and first runs."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from ..forms.document_model import FormDocument, parse_timestamp
from ..services.form_repository import FORMS_FILENAME, FormRepository

_SAMPLE_FORMS: tuple[tuple[str, str, str, str], ...] = (
    (
        "1",
        "Employee Feedback Form",
        "Collects feedback from employees quarterly.",
        "2025-10-15T12:30:00Z",
    ),
    (
        "2",
        "Customer Satisfaction Survey",
        "Survey to measure overall customer satisfaction.",
        "2025-09-10T08:15:00Z",
    ),
    (
        "3",
        "Event Registration Form",
        "Used for attendee registration at company events.",
        "2025-08-05T10:00:00Z",
    ),
)


def sample_forms() -> list[FormDocument]:
    """Return fresh copies of the sample forms, newest first."""

    documents: list[FormDocument] = []
    for form_id, title, description, created in _SAMPLE_FORMS:
        created_at = parse_timestamp(created)
        assert created_at is not None
        documents.append(
            FormDocument(id=form_id, title=title, description=description, created_at=created_at, fields=[])
        )
    return documents


def seed_repository(repository: FormRepository, *, overwrite: bool = False) -> int:
    """Write the sample forms unless the repository already has content."""

    existing = repository.load()
    if existing and not overwrite:
        return 0
    documents = sample_forms()
    if not repository.save(documents):
        return 0
    return len(documents)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed sample forms into a forms file.")
    parser.add_argument("target", type=Path, help=f"Directory that will hold {FORMS_FILENAME}.")
    parser.add_argument("--overwrite", action="store_true", help="Replace existing forms.")
    args = parser.parse_args(argv)

    written = seed_repository(FormRepository(args.target / FORMS_FILENAME), overwrite=args.overwrite)
    print(f"Seeded {written} form(s) into {args.target / FORMS_FILENAME}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual utility
    raise SystemExit(main())
