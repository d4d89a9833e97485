"""Editing session domain service.

An editing session checks one document out of a :class:`FormStore` into a
private working copy, applies edits to that copy as pure transforms, and
either commits the whole copy back through ``FormStore.update`` or discards
it by re-cloning from the store.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from ..events import EventBus, FormSaved, SessionStateChanged
from ..forms.document_model import (
    DEFAULT_WIDTH,
    Field,
    FieldOption,
    FieldStyling,
    FieldValidation,
    FieldType,
    FormDocument,
    GlobalStyle,
    LAYOUTS,
    WIDTHS,
    coerce_field_type,
    new_id,
)
from .form_store import FormStore, Snapshot, Subscription

LOGGER = logging.getLogger(__name__)

SEED_OPTION_LABEL = "Option 1"
SEED_OPTION_VALUE = "opt1"
NEW_OPTION_LABEL = "New option"
NEW_OPTION_VALUE = "new_option"


class SessionState(str, Enum):
    UNBOUND = "unbound"
    CLEAN = "clean"
    DIRTY = "dirty"


class EditingSession:
    """Isolated, mutable working copy of a single form document.

    States:
        - UNBOUND: the store has no document with the requested id; edits
          are no-ops.
        - CLEAN: the working copy equals the last version seen in the store.
        - DIRTY: local edits have not been saved or discarded yet.

    A store change to the source document re-clones the working copy while
    CLEAN or UNBOUND. While DIRTY the refresh is deferred and
    :attr:`pending_refresh` is set; local edits are never dropped by a
    background change.
    """

    def __init__(
        self,
        store: FormStore,
        form_id: str,
        *,
        event_bus: EventBus | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Bind a session to ``form_id`` and subscribe to ``store``.

        Args:
            store: The store holding the source document.
            form_id: Id of the document to edit.
            event_bus: Optional bus receiving SessionStateChanged/FormSaved.
            id_factory: Source of new field and option ids.
        """
        self._store = store
        self._form_id = form_id
        self._bus = event_bus
        self._id_factory = id_factory or new_id
        self._state = SessionState.UNBOUND
        self._source: FormDocument | None = None
        self._working: FormDocument | None = None
        self._selected_field_id: str | None = None
        self._pending_refresh = False
        self._committing = False
        self._subscription: Subscription | None = None
        self._subscription = store.subscribe(self._on_store_snapshot)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def form_id(self) -> str:
        return self._form_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_dirty(self) -> bool:
        return self._state is SessionState.DIRTY

    @property
    def is_bound(self) -> bool:
        return self._working is not None

    @property
    def pending_refresh(self) -> bool:
        """True when the store changed underneath unsaved local edits."""
        return self._pending_refresh

    @property
    def document(self) -> FormDocument | None:
        """Return a copy of the working document, or None when unbound."""
        return self._working.copy() if self._working is not None else None

    @property
    def selected_field_id(self) -> str | None:
        return self._selected_field_id

    @property
    def selected_field(self) -> Field | None:
        if self._working is None or self._selected_field_id is None:
            return None
        found = self._working.find_field(self._selected_field_id)
        return copy.deepcopy(found) if found is not None else None

    def select_field(self, field_id: str | None) -> bool:
        if field_id is None:
            self._selected_field_id = None
            return True
        if self._working is None or self._working.find_field(field_id) is None:
            return False
        self._selected_field_id = field_id
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop following store changes."""
        if self._subscription is not None:
            self._store.unsubscribe(self._subscription)
            self._subscription = None

    def __enter__(self) -> "EditingSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def save(self) -> FormDocument | None:
        """Commit the working copy to the store.

        Returns:
            The store-confirmed document, or None when there was nothing to
            save or the document no longer exists in the store.
        """
        if self._state is not SessionState.DIRTY or self._working is None:
            return None

        self._committing = True
        try:
            confirmed = self._store.update(self._form_id, self._working)
        finally:
            self._committing = False

        if confirmed is None:
            LOGGER.warning("EditingSession.save: form_id=%s no longer exists", self._form_id)
            return None

        LOGGER.debug("EditingSession.save: form_id=%s, fields=%d", self._form_id, len(confirmed.fields))
        self._bind(confirmed)
        if self._bus is not None:
            self._bus.publish(FormSaved(form_id=self._form_id, field_count=len(confirmed.fields)))
        return confirmed.copy()

    def discard(self) -> bool:
        """Drop local edits and re-clone the store's current version.

        Returns:
            True if edits were discarded.
        """
        if self._state is not SessionState.DIRTY:
            return False
        LOGGER.debug("EditingSession.discard: form_id=%s", self._form_id)
        self._bind(self._store.get(self._form_id))
        return True

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def add_field(self, field_type: FieldType | str) -> str | None:
        """Append a new field of ``field_type`` and return its id."""
        kind = coerce_field_type(field_type)
        if self._working is None:
            return None

        fields = list(self._working.fields)
        field_id = self._unique_id(self._working.field_ids())
        new_field = Field(
            id=field_id,
            name=f"field_{len(fields) + 1}",
            label=f"New {kind.value}",
            type=kind,
            placeholder="",
            options=self._seed_options() if kind.has_options else None,
            validation=FieldValidation(),
            styling=FieldStyling(width=DEFAULT_WIDTH),
            disabled=False,
        )
        fields.append(new_field)
        self._commit_local(replace(self._working, fields=fields))
        if self._selected_field_id is None:
            self._selected_field_id = field_id
        return field_id

    def remove_field(self, field_id: str) -> bool:
        if self._working is None or self._working.find_field(field_id) is None:
            return False
        fields = [item for item in self._working.fields if item.id != field_id]
        self._commit_local(replace(self._working, fields=fields))
        if self._selected_field_id == field_id:
            self._selected_field_id = fields[0].id if fields else None
        return True

    def reorder_fields(self, order: Sequence[Field | str]) -> bool:
        """Replace the field sequence with ``order`` exactly as given.

        Items may be :class:`Field` instances or ids of fields in the
        working copy. Unknown ids are skipped, and so is any id already
        placed earlier in ``order``.
        """
        if self._working is None:
            return False
        fields: list[Field] = []
        seen: set[str] = set()
        for item in order:
            found = item if isinstance(item, Field) else self._working.find_field(item)
            if found is None:
                LOGGER.warning("EditingSession.reorder_fields: unknown field_id=%s", item)
                continue
            if found.id in seen:
                LOGGER.warning("EditingSession.reorder_fields: repeated field_id=%s", found.id)
                continue
            seen.add(found.id)
            fields.append(found)
        self._commit_local(replace(self._working, fields=fields))
        return True

    def move_field(self, field_id: str, offset: int) -> bool:
        """Move a field ``offset`` positions; moves past either end are refused."""
        if self._working is None:
            return False
        ids = list(self._working.field_ids())
        if field_id not in ids:
            return False
        index = ids.index(field_id)
        target = index + offset
        if offset == 0 or target < 0 or target >= len(ids):
            return False
        ids.insert(target, ids.pop(index))
        return self.reorder_fields(ids)

    def patch_field(self, field_id: str, partial: Mapping[str, Any]) -> bool:
        """Shallow-merge ``partial`` onto one field; ``id`` is never changed.

        ``validation`` and ``styling`` may be given as wire-format mappings.
        A styling width outside :data:`WIDTHS` rejects the whole patch.
        """
        if self._working is None:
            return False
        target = self._working.find_field(field_id)
        if target is None:
            return False

        changes = {key: value for key, value in partial.items() if key != "id"}
        allowed = set(Field.__dataclass_fields__)  # type: ignore[attr-defined]
        unknown = sorted(set(changes) - allowed)
        if unknown:
            LOGGER.warning("EditingSession.patch_field: ignoring unknown keys %s", unknown)
            changes = {key: value for key, value in changes.items() if key in allowed}

        if "type" in changes:
            kind = coerce_field_type(changes["type"])
            changes["type"] = kind
            if kind.has_options and not changes.get("options", target.options):
                changes["options"] = self._seed_options()
        updated = replace(target, **changes)
        if not _valid_field_shape(updated):
            LOGGER.warning(
                "EditingSession.patch_field: rejected field_id=%s (validation=%r, styling=%r)",
                field_id,
                updated.validation,
                updated.styling,
            )
            return False
        fields =[updated if item.id == field_id else item for item in self._working.fields]
        self._commit_local(replace(self._working, fields=fields))
        return True

    def patch_selected_field(self, partial: Mapping[str, Any]) -> bool:
        if self._selected_field_id is None:
            return False
        return self.patch_field(self._selected_field_id, partial)

    # ------------------------------------------------------------------
    # Option edits (selected field)
    # ------------------------------------------------------------------

    def add_option(self) -> str | None:
        selected = self._selected_choice_field()
        if selected is None:
            return None
        options = list(selected.options or [])
        option_id = self._unique_id(option.id for option in options)
        options.append(FieldOption(id=option_id, label=NEW_OPTION_LABEL, value=NEW_OPTION_VALUE))
        self.patch_field(selected.id, {"options": options})
        return option_id

    def update_option_label(self, option_id: str, label: str) -> bool:
        """Relabel an option; its value is re-derived from the new label."""
        selected = self._selected_choice_field()
        if selected is None or selected.find_option(option_id) is None:
            return False
        options = [
            option.relabel(label) if option.id == option_id else option
            for option in selected.options or []
        ]
        return self.patch_field(selected.id, {"options": options})

    def remove_option(self, option_id: str) -> bool:
        selected = self._selected_choice_field()
        if selected is None or selected.find_option(option_id) is None:
            return False
        options = [option for option in selected.options or [] if option.id != option_id]
        return self.patch_field(selected.id, {"options": options})

    # ------------------------------------------------------------------
    # Document edits
    # ------------------------------------------------------------------

    def rename_title(self, title: str) -> bool:
        if self._working is None:
            return False
        self._commit_local(replace(self._working, title=title))
        return True

    def set_description(self, description: str) -> bool:
        if self._working is None:
            return False
        self._commit_local(replace(self._working, description=description))
        return True

    def set_global_style(self, **values: Any) -> bool:
        """Merge ``submit_label``/``layout``/``class_name`` into the global style.

        A layout outside :data:`LAYOUTS` is refused and the working copy is
        left unchanged.
        """
        if self._working is None:
            return False
        style = replace(self._working.global_style or GlobalStyle(), **values)
        if style.layout is not None and style.layout not in LAYOUTS:
            LOGGER.warning("EditingSession.set_global_style: unsupported layout %r", style.layout)
            return False
        self._commit_local(replace(self._working, global_style=style))
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_store_snapshot(self, snapshot: Snapshot) -> None:
        if self._committing:
            return
        latest = next((doc for doc in snapshot if doc.id == self._form_id), None)
        if latest == self._source and (latest is None) == (self._working is None):
            return
        if self._state is SessionState.DIRTY:
            LOGGER.info(
                "EditingSession: form_id=%s changed in store while dirty; refresh deferred",
                self._form_id,
            )
            self._pending_refresh = True
            return
        self._bind(latest)

    def _bind(self, source: FormDocument | None) -> None:
        self._pending_refresh = False
        if source is None:
            self._source = None
            self._working = None
            self._selected_field_id = None
            self._set_state(SessionState.UNBOUND)
            return
        self._source = source.copy()
        self._working = source.copy()
        if self._selected_field_id is None or self._working.find_field(self._selected_field_id) is None:
            self._selected_field_id = self._working.fields[0].id if self._working.fields else None
        self._set_state(SessionState.CLEAN)

    def _commit_local(self, document: FormDocument) -> None:
        # ``replace`` re-runs FormDocument.__post_init__, which deep-copies
        # the field list, so the previous working copy is left untouched.
        self._working = document
        self._set_state(SessionState.DIRTY)

    def _set_state(self, state: SessionState) -> None:
        previous = self._state
        self._state = state
        if previous is state:
            return
        LOGGER.debug("EditingSession: form_id=%s %s -> %s", self._form_id, previous.value, state.value)
        if self._bus is not None:
            self._bus.publish(
                SessionStateChanged(form_id=self._form_id, previous=previous.value, current=state.value)
            )

    def _selected_choice_field(self) -> Field | None:
        if self._working is None or self._selected_field_id is None:
            return None
        selected = self._working.find_field(self._selected_field_id)
        if selected is None or not selected.type.has_options:
            return None
        return selected

    def _seed_options(self) -> list[FieldOption]:
        return [FieldOption(id=self._id_factory(), label=SEED_OPTION_LABEL, value=SEED_OPTION_VALUE)]

    def _unique_id(self, existing: Any) -> str:
        taken = set(existing)
        candidate = self._id_factory()
        while candidate in taken:
            candidate = self._id_factory()
        return candidate


def _valid_field_shape(item: Field) -> bool:
    if item.validation is not None and not isinstance(item.validation, FieldValidation):
        return False
    if item.styling is None:
        return True
    if not isinstance(item.styling, FieldStyling):
        return False
    return item.styling.width is None or item.styling.width in WIDTHS


__all__ = ["EditingSession", "SessionState"]
