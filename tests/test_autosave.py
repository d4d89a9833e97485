"""Tests for the store autosave observer."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from formsmith.domain.autosave import StoreAutosaver
from formsmith.domain.form_store import FormStore
from formsmith.forms.document_model import FormDocument
from formsmith.services.form_repository import FormRepository


class RecordingRepository:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.saved: list[list[str]] = []

    def save(self, documents: Sequence[FormDocument]) -> bool:
        self.saved.append([doc.id for doc in documents])
        return self.succeed


def test_initial_subscription_does_not_save(store: FormStore) -> None:
    repository = RecordingRepository()

    autosaver = StoreAutosaver(store, repository)

    assert repository.saved == []
    assert autosaver.attached


def test_every_mutation_saves_full_snapshot(store: FormStore) -> None:
    repository = RecordingRepository()
    autosaver = StoreAutosaver(store, repository)

    first = store.create("A")
    store.create("B")
    store.delete(first.id)
    store.delete("missing")

    assert repository.saved == [["id-1"], ["id-2", "id-1"], ["id-2"]]
    assert autosaver.save_count == 3


def test_failed_save_is_counted_not_raised(store: FormStore) -> None:
    autosaver = StoreAutosaver(store, RecordingRepository(succeed=False))

    store.create("A")

    assert autosaver.failure_count == 1
    assert len(store) == 1


def test_detach_stops_saving(store: FormStore) -> None:
    repository = RecordingRepository()
    autosaver = StoreAutosaver(store, repository)

    autosaver.detach()
    store.create("A")

    assert repository.saved == []
    assert not autosaver.attached


def test_persisted_collection_reloads(store: FormStore, tmp_path: Path) -> None:
    repository = FormRepository(tmp_path / "forms.json")
    StoreAutosaver(store, repository)

    created = store.create("Persisted")
    store.clone(created.id)

    reloaded = FormStore(repository.load())
    assert [doc.title for doc in reloaded.list()] == ["Persisted (copy)", "Persisted"]
