"""Form store domain manager.

Single source of truth for the collection of form documents. Every mutation
goes through this class, which stamps timestamps, keeps documents isolated
from callers through deep copies, and fans out a full snapshot to each
registered observer after a successful change.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime, timedelta
from itertools import count
from typing import Any, Callable, Iterable, Mapping, Protocol, Union, runtime_checkable

from ..events import (
    Event,
    EventBus,
    FormCloned,
    FormCreated,
    FormDeleted,
    FormsReplaced,
    FormStatusToggled,
    FormUpdated,
)
from ..forms.document_model import (
    DEFAULT_LAYOUT,
    DEFAULT_SUBMIT_LABEL,
    FormDocument,
    GlobalStyle,
    new_id,
    normalize_fields,
    utcnow,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_FORM_TITLE = "Untitled Form"
COPY_SUFFIX = " (copy)"
_TIMESTAMP_STEP = timedelta(microseconds=1)
_PROTECTED_KEYS = frozenset({"id", "created_at", "updated_at"})
_PATCHABLE_KEYS = frozenset(f.name for f in dataclass_fields(FormDocument)) - _PROTECTED_KEYS

Snapshot = tuple[FormDocument, ...]


@runtime_checkable
class StoreObserver(Protocol):
    """Object-style observer receiving full collection snapshots."""

    def notify(self, snapshot: Snapshot) -> None:  # pragma: no cover - protocol
        ...


ObserverLike = Union[StoreObserver, Callable[[Snapshot], None]]


@dataclass(frozen=True, slots=True)
class Subscription:
    """Opaque handle returned by :meth:`FormStore.subscribe`."""

    id: int


class FormStore:
    """Domain manager for the form document collection.

    Documents are kept most-recent-first. Reads return deep copies, writes
    store deep copies, so nothing a caller holds aliases store state.

    Events Emitted (when an event bus is supplied):
        - FormCreated, FormUpdated, FormDeleted, FormCloned,
          FormStatusToggled, FormsReplaced
    """

    def __init__(
        self,
        documents: Iterable[FormDocument] | None = None,
        *,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            documents: Optional initial collection, kept in the given order.
            event_bus: Optional bus that receives lifecycle events.
            clock: Source of "now"; defaults to timezone-aware UTC.
            id_factory: Source of new document ids.
        """
        self._documents: list[FormDocument] = [_normalized_copy(doc) for doc in documents or ()]
        self._bus = event_bus
        self._clock = clock or utcnow
        self._id_factory = id_factory or new_id
        self._observers: dict[int, ObserverLike] = {}
        self._subscription_ids = count(1)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> Snapshot:
        """Return a point-in-time copy of every document, most recent first."""
        return self._snapshot()

    def get(self, form_id: str) -> FormDocument | None:
        """Return a copy of the document with ``form_id``, or None if absent."""
        index = self._index_of(form_id)
        if index is None:
            return None
        return self._documents[index].copy()

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, form_id: object) -> bool:
        return isinstance(form_id, str) and self._index_of(form_id) is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, title: str = DEFAULT_FORM_TITLE, description: str = "") -> FormDocument:
        """Create a new empty document and insert it at the front.

        Returns:
            A copy of the created document.

        Emits:
            FormCreated
        """
        now = self._clock()
        document = FormDocument(
            id=self._allocate_id(),
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
            disabled=False,
            global_style=GlobalStyle(submit_label=DEFAULT_SUBMIT_LABEL, layout=DEFAULT_LAYOUT),
            fields=[],
        )
        self._documents.insert(0, document)
        LOGGER.debug("FormStore.create: form_id=%s, title=%r", document.id, title)
        self._after_mutation(FormCreated(form_id=document.id, title=title))
        return document.copy()

    def update(self, form_id: str, patch: Mapping[str, Any] | FormDocument) -> FormDocument | None:
        """Shallow-merge ``patch`` onto a document and refresh ``updated_at``.

        ``patch`` is either a mapping of attribute names or a whole
        :class:`FormDocument` (as sent by an editing session on save). The
        id and timestamps are never taken from a patch.

        Returns:
            A copy of the updated document, or None if ``form_id`` is unknown.

        Emits:
            FormUpdated: Only when the document exists.
        """
        index = self._index_of(form_id)
        if index is None:
            LOGGER.debug("FormStore.update: unknown form_id=%s", form_id)
            return None

        changes = _coerce_patch(patch)
        current = self._documents[index]
        for key, value in changes.items():
            setattr(current, key, value)
        current.updated_at = self._next_timestamp(current.updated_at)

        LOGGER.debug("FormStore.update: form_id=%s, keys=%s", form_id, sorted(changes))
        self._after_mutation(FormUpdated(form_id=form_id, changed=tuple(sorted(changes))))
        return current.copy()

    def delete(self, form_id: str) -> bool:
        """Remove a document.

        Returns:
            True if a document was removed. Deleting an unknown id is silent.

        Emits:
            FormDeleted: Only when a document was removed.
        """
        index = self._index_of(form_id)
        if index is None:
            LOGGER.debug("FormStore.delete: unknown form_id=%s", form_id)
            return False
        del self._documents[index]
        LOGGER.debug("FormStore.delete: form_id=%s", form_id)
        self._after_mutation(FormDeleted(form_id=form_id))
        return True

    def clone(self, form_id: str) -> FormDocument | None:
        """Insert an independent copy of a document at the front.

        The copy gets a new id, a ``" (copy)"`` title suffix and fresh
        timestamps; fields and options are deep-copied.

        Emits:
            FormCloned
        """
        index = self._index_of(form_id)
        if index is None:
            LOGGER.debug("FormStore.clone: unknown form_id=%s", form_id)
            return None

        now = self._clock()
        duplicate = self._documents[index].copy()
        duplicate.id = self._allocate_id()
        duplicate.title = f"{duplicate.title}{COPY_SUFFIX}"
        duplicate.created_at = now
        duplicate.updated_at = now
        self._documents.insert(0, duplicate)

        LOGGER.debug("FormStore.clone: source=%s, form_id=%s", form_id, duplicate.id)
        self._after_mutation(FormCloned(source_id=form_id, form_id=duplicate.id))
        return duplicate.copy()

    def toggle_status(self, form_id: str) -> FormDocument | None:
        """Flip the ``disabled`` (unpublished) flag of a document.

        Emits:
            FormStatusToggled
        """
        index = self._index_of(form_id)
        if index is None:
            LOGGER.debug("FormStore.toggle_status: unknown form_id=%s", form_id)
            return None

        current = self._documents[index]
        current.disabled = not current.disabled
        current.updated_at = self._next_timestamp(current.updated_at)

        LOGGER.debug("FormStore.toggle_status: form_id=%s, disabled=%s", form_id, current.disabled)
        self._after_mutation(FormStatusToggled(form_id=form_id, disabled=current.disabled))
        return current.copy()

    def replace_all(self, documents: Iterable[FormDocument]) -> None:
        """Replace the entire collection; always notifies.

        Emits:
            FormsReplaced
        """
        self._documents = [_normalized_copy(doc) for doc in documents]
        LOGGER.debug("FormStore.replace_all: count=%d", len(self._documents))
        self._after_mutation(FormsReplaced(count=len(self._documents)))

    def clear(self) -> None:
        self.replace_all(())

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: ObserverLike) -> Subscription:
        """Register ``observer`` and call it once with the current snapshot.

        ``observer`` is either a callable taking the snapshot or an object
        with a ``notify(snapshot)`` method. It is called again after every
        successful mutation. When an observer has a ``notify`` attribute,
        ``notify`` is used even if the observer itself is callable.
        """
        handle = Subscription(next(self._subscription_ids))
        self._observers[handle.id] = observer
        LOGGER.debug("FormStore.subscribe: handle=%s, observers=%d", handle.id, len(self._observers))
        self._deliver(handle.id, observer, self._snapshot())
        return handle

    def unsubscribe(self, handle: Subscription) -> bool:
        """Remove an observer; unknown handles are ignored."""
        removed = self._observers.pop(handle.id, None) is not None
        if removed:
            LOGGER.debug("FormStore.unsubscribe: handle=%s", handle.id)
        return removed

    def observer_count(self) -> int:
        return len(self._observers)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _after_mutation(self, event: Event) -> None:
        self._notify_all()
        if self._bus is not None:
            self._bus.publish(event)

    def _notify_all(self) -> None:
        for handle_id, observer in list(self._observers.items()):
            if handle_id not in self._observers:
                # Unsubscribed by an earlier observer during this fan-out.
                continue
            self._deliver(handle_id, observer, self._snapshot())

    def _deliver(self, handle_id: int, observer: ObserverLike, snapshot: Snapshot) -> None:
        callback = observer.notify if isinstance(observer, StoreObserver) else observer
        try:
            callback(snapshot)
        except Exception:
            LOGGER.exception("FormStore observer %s raised during notification", handle_id)

    def _snapshot(self) -> Snapshot:
        return tuple(doc.copy() for doc in self._documents)

    def _index_of(self, form_id: str) -> int | None:
        for index, document in enumerate(self._documents):
            if document.id == form_id:
                return index
        return None

    def _allocate_id(self) -> str:
        candidate = self._id_factory()
        while self._index_of(candidate) is not None:
            candidate = self._id_factory()
        return candidate

    def _next_timestamp(self, previous: datetime | None) -> datetime:
        now = self._clock()
        if previous is not None and now <= previous:
            return previous + _TIMESTAMP_STEP
        return now


def _normalized_copy(document: FormDocument) -> FormDocument:
    duplicate = document.copy()
    duplicate.fields = normalize_fields(duplicate.fields)
    if duplicate.updated_at is None or duplicate.updated_at < duplicate.created_at:
        duplicate.updated_at = duplicate.created_at
    return duplicate


def _coerce_patch(patch: Mapping[str, Any] | FormDocument) -> dict[str, Any]:
    if isinstance(patch, FormDocument):
        source = patch.copy()
        raw = {name: getattr(source, name) for name in _PATCHABLE_KEYS}
    else:
        raw = dict(patch)

    changes: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _PROTECTED_KEYS:
            LOGGER.debug("Ignoring protected key %r in form patch", key)
            continue
        if key not in _PATCHABLE_KEYS:
            LOGGER.warning("Ignoring unknown key %r in form patch", key)
            continue
        changes[key] = _coerce_value(key, value)
    return changes


def _coerce_value(key: str, value: Any) -> Any:
    if key == "fields":
        return normalize_fields(value)
    if key == "global_style":
        if isinstance(value, Mapping):
            return GlobalStyle.from_dict(value)
        return copy.deepcopy(value)
    if key == "disabled":
        return bool(value)
    if key == "description" and value is None:
        return ""
    return value


__all__ = [
    "FormStore",
    "StoreObserver",
    "Subscription",
    "Snapshot",
    "DEFAULT_FORM_TITLE",
    "COPY_SUFFIX",
]
