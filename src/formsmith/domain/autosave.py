"""Store observer that mirrors every committed change to durable storage."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from ..forms.document_model import FormDocument
from .form_store import FormStore, Snapshot, Subscription

LOGGER = logging.getLogger(__name__)


class SnapshotRepository(Protocol):
    """Persistence collaborator accepted by :class:`StoreAutosaver`."""

    def save(self, documents: Sequence[FormDocument]) -> bool:  # pragma: no cover - protocol
        ...


class StoreAutosaver:
    """Persist a full store snapshot after each successful mutation.

    The callback :meth:`FormStore.subscribe` fires on registration is
    skipped since nothing has changed yet. A failed save is logged by the
    repository and left for the next mutation; it is not retried.
    """

    def __init__(self, store: FormStore, repository: SnapshotRepository) -> None:
        self._store = store
        self._repository = repository
        self._primed = False
        self._save_count = 0
        self._failure_count = 0
        self._subscription: Subscription | None = store.subscribe(self._on_snapshot)
        self._primed = True

    @property
    def save_count(self) -> int:
        return self._save_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    def detach(self) -> None:
        if self._subscription is not None:
            self._store.unsubscribe(self._subscription)
            self._subscription = None

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if not self._primed:
            return
        if self._repository.save(snapshot):
            self._save_count += 1
            LOGGER.debug("StoreAutosaver: persisted %d form(s)", len(snapshot))
        else:
            self._failure_count += 1
            LOGGER.warning("StoreAutosaver: snapshot of %d form(s) was not persisted", len(snapshot))


__all__ = ["StoreAutosaver", "SnapshotRepository"]
