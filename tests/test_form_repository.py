"""Tests for the JSON forms file."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from formsmith.forms.document_model import Field, FieldOption, FieldType, FormDocument
from formsmith.services.form_repository import FORMS_FILENAME, FormRepository

from tests.helpers import START_TIME


def _document(form_id: str = "d1") -> FormDocument:
    return FormDocument(
        id=form_id,
        title="Feedback",
        created_at=START_TIME,
        fields=[
            Field(
                id="f1",
                name="mood",
                label="Mood",
                type=FieldType.SELECT,
                options=[FieldOption(id="o1", label="Happy", value="happy")],
            )
        ],
    )


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    assert FormRepository(tmp_path / FORMS_FILENAME).load() == []


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    repository = FormRepository(tmp_path / "nested" / FORMS_FILENAME)
    documents = [_document("d1"), _document("d2")]

    assert repository.save(documents) is True

    assert repository.load() == documents
    payload = json.loads(repository.path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert [entry["id"] for entry in payload["forms"]] == ["d1", "d2"]
    assert not repository.path.with_suffix(".tmp").exists()


@pytest.mark.parametrize("body", ["{not json", "42", '{"forms": "nope"}', ""])
def test_corrupt_file_loads_empty(tmp_path: Path, body: str, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / FORMS_FILENAME
    path.write_text(body, encoding="utf-8")

    assert FormRepository(path).load() == []
    assert caplog.records


def test_legacy_bare_list_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / FORMS_FILENAME
    path.write_text(json.dumps([_document().to_dict()]), encoding="utf-8")

    assert [doc.id for doc in FormRepository(path).load()] == ["d1"]


def test_invalid_and_duplicate_entries_are_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / FORMS_FILENAME
    good = _document("d1").to_dict()
    bad_type = {**_document("d2").to_dict(), "fields": [{"id": "f1", "type": "slider"}]}
    missing_title = {"id": "d3"}
    path.write_text(json.dumps({"version": 1, "forms": [good, bad_type, missing_title, good]}), encoding="utf-8")

    loaded = FormRepository(path).load()

    assert [doc.id for doc in loaded] == ["d1"]
    assert "Skipping duplicate form id d1" in caplog.text


def test_save_failure_returns_false(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")

    assert FormRepository(blocker / FORMS_FILENAME).save([_document()]) is False


def test_unserialisable_document_returns_false(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    document = _document()
    document.fields[0].validation = "required"  # type: ignore[assignment]
    path = tmp_path / FORMS_FILENAME

    assert FormRepository(path).save([document]) is False

    assert not path.exists()
    assert "Failed to save forms" in caplog.text
