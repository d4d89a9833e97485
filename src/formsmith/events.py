"""Event bus and form lifecycle events.

Components publish typed events here so that listeners (autosave, logging,
presentation layers) can react to store and session changes without holding
references to each other.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on an :class:`EventBus`."""


# =============================================================================
# Store events
# =============================================================================


@dataclass(slots=True)
class FormCreated(Event):
    """A new form document was inserted at the front of the store."""

    form_id: str
    title: str


@dataclass(slots=True)
class FormUpdated(Event):
    """A form document was patched in place.

    Attributes:
        form_id: The document that changed.
        changed: Attribute names taken from the patch.
    """

    form_id: str
    changed: tuple[str, ...] = ()


@dataclass(slots=True)
class FormDeleted(Event):
    form_id: str


@dataclass(slots=True)
class FormCloned(Event):
    """A copy of ``source_id`` was inserted as ``form_id``."""

    source_id: str
    form_id: str


@dataclass(slots=True)
class FormStatusToggled(Event):
    form_id: str
    disabled: bool


@dataclass(slots=True)
class FormsReplaced(Event):
    """The whole collection was swapped out (bulk load or clear)."""

    count: int


# =============================================================================
# Editing session events
# =============================================================================


@dataclass(slots=True)
class SessionStateChanged(Event):
    """An editing session moved between unbound, clean and dirty.

    Attributes:
        form_id: The document the session is bound to.
        previous: State name before the transition.
        current: State name after the transition.
    """

    form_id: str
    previous: str
    current: str


@dataclass(slots=True)
class FormSaved(Event):
    """An editing session committed its working copy to the store."""

    form_id: str
    field_count: int


class EventBus(Generic[E]):
    """Synchronous publish/subscribe hub keyed by event type.

    Bound methods are held through :class:`weakref.WeakMethod` so a listener
    object can be garbage collected without unsubscribing; plain functions
    are held strongly. Handlers run in registration order and a failing
    handler is logged without stopping the others.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: Event) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))
        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for event %s", _handler_name(handler), event_type.__name__
                )

        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[Event] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: Any, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)  # type: ignore[arg-type]
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref
        return self._ref()

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Any) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "FormCreated",
    "FormUpdated",
    "FormDeleted",
    "FormCloned",
    "FormStatusToggled",
    "FormsReplaced",
    "SessionStateChanged",
    "FormSaved",
]
