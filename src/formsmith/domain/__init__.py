"""Domain layer for form editing.

Domain Managers:
    - FormStore: authoritative collection of form documents
    - EditingSession: isolated working copy of one document
    - StoreAutosaver: mirrors store changes to durable storage

All managers receive their collaborators via constructor injection and
report changes through observers or the event bus.
"""

from __future__ import annotations

from .autosave import StoreAutosaver
from .editing_session import EditingSession, SessionState
from .form_store import FormStore, Subscription

__all__ = [
    "FormStore",
    "Subscription",
    "EditingSession",
    "SessionState",
    "StoreAutosaver",
]
