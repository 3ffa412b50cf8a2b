"""Change detection between the stored state and a fresh snapshot."""

from __future__ import annotations

import structlog

from .models import (
    ChangeEvent,
    DocumentsChanged,
    MarkerRaised,
    NoChange,
    PersistedState,
    Snapshot,
    TextChanged,
    unique_by_url,
)

logger = structlog.get_logger(__name__)


def diff_documents(previous: PersistedState, snapshot: Snapshot) -> DocumentsChanged:
    """Set difference by url. Documents present on both sides are never reported."""
    current = unique_by_url(snapshot.documents or [])
    previous_urls = {doc.url for doc in previous.documents}
    current_urls = {doc.url for doc in current}
    return DocumentsChanged(
        added=tuple(doc for doc in current if doc.url not in previous_urls),
        removed=tuple(doc for doc in previous.documents if doc.url not in current_urls),
    )


def detect_change(previous: PersistedState, snapshot: Snapshot) -> ChangeEvent:
    """
    Decide which single event a found snapshot represents.

    Precedence: document additions/removals, then the marker's false->true
    edge, then (free-text sources only) a non-empty text change.

    Args:
        previous: Last persisted state (empty default on first run)
        snapshot: Current snapshot with ``found`` set

    Returns:
        Exactly one ChangeEvent
    """
    if snapshot.tracks_documents:
        change = diff_documents(previous, snapshot)
        if change.added or change.removed:
            logger.info(
                "documents_changed",
                added=len(change.added),
                removed=len(change.removed),
            )
            return change

    logger.debug(
        "marker_compared",
        previous=previous.has_marker,
        current=snapshot.has_marker,
    )
    if snapshot.has_marker and not previous.has_marker:
        logger.info("marker_raised")
        return MarkerRaised()

    if (
        not snapshot.tracks_documents
        and snapshot.summary_text
        and snapshot.summary_text != previous.summary_text
    ):
        logger.info("summary_text_changed", length=len(snapshot.summary_text))
        return TextChanged(text=snapshot.summary_text, has_marker=snapshot.has_marker)

    return NoChange()
