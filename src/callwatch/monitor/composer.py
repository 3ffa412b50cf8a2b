"""Turns a ChangeEvent into a Telegram-HTML notification."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Optional

from .models import (
    ChangeEvent,
    Document,
    DocumentsChanged,
    MarkerRaised,
    Snapshot,
    TextChanged,
)


@dataclass(frozen=True)
class Notification:
    """Composed message ready for broadcast."""

    text: str  # Telegram HTML
    title: str  # plain, used by the secondary channel
    image: Optional[Path] = None


def _added_line(doc: Document) -> str:
    line = f"• <b>{escape(doc.section)}</b>: <a href=\"{escape(doc.url, quote=True)}\">{escape(doc.name)}</a>"
    if doc.date:
        line += f" ({escape(doc.date)})"
    if doc.is_new:
        line += " 🆕"
    return line


def _removed_line(doc: Document) -> str:
    line = f"• <b>{escape(doc.section)}</b>: <s>{escape(doc.name)}</s>"
    if doc.date:
        line += f" ({escape(doc.date)})"
    return line


def _source_line(source_link: str) -> str:
    return f"🔗 <a href=\"{escape(source_link, quote=True)}\">View announcement</a>"


def _documents_message(event: DocumentsChanged, source_link: str) -> str:
    parts = ["📄 <b>DOCUMENTS UPDATED</b> 📄"]
    if event.added:
        parts.append("")
        parts.append(f"🆕 <b>Added ({len(event.added)}):</b>")
        parts.extend(_added_line(doc) for doc in event.added)
    if event.removed:
        parts.append("")
        parts.append(f"🗑 <b>Removed ({len(event.removed)}):</b>")
        parts.extend(_removed_line(doc) for doc in event.removed)
    parts.append("")
    parts.append(_source_line(source_link))
    return "\n".join(parts)


def _marker_message(snapshot: Snapshot, source_link: str) -> str:
    parts = [
        "🚀 <b>NEW UPDATE ON THE LISTING!</b> 🚀",
        "",
        "⭐ The <b>update marker</b> is now active.",
    ]
    if snapshot.summary_text:
        parts.extend(["", "📝 <b>Content:</b>", f"<i>{escape(snapshot.summary_text)}</i>"])
    parts.extend(["", _source_line(source_link)])
    return "\n".join(parts)


def _text_message(event: TextChanged) -> str:
    marker = "ACTIVE ✅" if event.has_marker else "NOT DETECTED ❌"
    return "\n".join([
        "📢 <b>ANNOUNCEMENT CHANGED</b> 📢",
        "",
        "The listing text has been modified.",
        "",
        "🆕 <b>New content:</b>",
        f"<i>{escape(event.text)}</i>",
        "",
        f"⭐ <b>Marker:</b> {marker}",
    ])


def compose_notification(
    event: ChangeEvent,
    snapshot: Snapshot,
    source_link: str,
) -> Optional[Notification]:
    """
    Build the message for a detected change.

    Args:
        event: Output of detect_change()
        snapshot: Snapshot the event was computed from (image, summary text)
        source_link: Public URL of the announcement

    Returns:
        Notification, or None for NoChange (caller must not dispatch)
    """
    if isinstance(event, DocumentsChanged):
        return Notification(
            text=_documents_message(event, source_link),
            title="Documents updated",
            image=snapshot.image,
        )
    if isinstance(event, MarkerRaised):
        return Notification(
            text=_marker_message(snapshot, source_link),
            title="Update marker active",
            image=snapshot.image,
        )
    if isinstance(event, TextChanged):
        return Notification(
            text=_text_message(event),
            title="Announcement changed",
            image=snapshot.image,
        )
    return None
