"""
Change detection core.

Snapshot models, the change detector and the notification composer. The
check pipeline and the scheduler live in their own modules because they
depend on persistence and the gateway.
"""

from .composer import Notification, compose_notification
from .detector import detect_change, diff_documents
from .models import (
    ChangeEvent,
    Document,
    DocumentsChanged,
    MarkerRaised,
    NoChange,
    PersistedState,
    Snapshot,
    TextChanged,
)

__all__ = [
    "ChangeEvent",
    "Document",
    "DocumentsChanged",
    "MarkerRaised",
    "NoChange",
    "Notification",
    "PersistedState",
    "Snapshot",
    "TextChanged",
    "compose_notification",
    "detect_change",
    "diff_documents",
]
