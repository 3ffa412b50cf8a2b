"""Data models for the monitored listing.

A Snapshot is a fresh read of the page; PersistedState is what survives
between checks. ChangeEvent variants are the outcome of diffing the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Document:
    """Supporting document attached to the announcement. Identity is ``url``."""

    section: str
    name: str
    url: str
    date: str = ""
    is_new: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "section": self.section,
            "name": self.name,
            "url": self.url,
            "date": self.date,
            "is_new": self.is_new,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        if not isinstance(data, dict):
            raise TypeError(f"Expected document object, got {type(data).__name__}")
        return cls(
            section=str(data.get("section", "")),
            name=str(data.get("name", "")),
            url=str(data["url"]),
            date=str(data.get("date", "")),
            is_new=bool(data.get("is_new", False)),
        )


def unique_by_url(documents: list[Document]) -> list[Document]:
    """Drop later duplicates of the same url, preserving order."""
    seen: set[str] = set()
    result = []
    for doc in documents:
        if doc.url in seen:
            continue
        seen.add(doc.url)
        result.append(doc)
    return result


@dataclass
class Snapshot:
    """Point-in-time read of the listing.

    ``documents`` is None when the source does not track documents; the
    change detector then falls back to comparing ``summary_text``.
    """

    found: bool
    has_marker: bool = False
    summary_text: str = ""
    documents: Optional[list[Document]] = None
    image: Optional[Path] = None

    @property
    def tracks_documents(self) -> bool:
        return self.documents is not None


@dataclass
class PersistedState:
    """Last successful check, stored as a single record."""

    has_marker: bool = False
    summary_text: str = ""
    documents: list[Document] = field(default_factory=list)
    last_check: Optional[datetime] = None

    def __post_init__(self):
        self.documents = unique_by_url(self.documents)

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, checked_at: datetime) -> "PersistedState":
        return cls(
            has_marker=snapshot.has_marker,
            summary_text=snapshot.summary_text,
            documents=list(snapshot.documents or []),
            last_check=checked_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_marker": self.has_marker,
            "summary_text": self.summary_text,
            "documents": [doc.to_dict() for doc in self.documents],
            "last_check": self.last_check.isoformat() if self.last_check else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedState":
        """Build from a stored payload.

        Raises:
            KeyError, TypeError, ValueError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected object, got {type(data).__name__}")
        documents = data.get("documents") or []
        if not isinstance(documents, list):
            raise TypeError(f"Expected document list, got {type(documents).__name__}")
        last_check = data.get("last_check")
        return cls(
            has_marker=bool(data.get("has_marker", False)),
            summary_text=str(data.get("summary_text") or ""),
            documents=[Document.from_dict(item) for item in documents],
            last_check=datetime.fromisoformat(last_check) if last_check else None,
        )


# ---------------------------------------------------------------------------
# Change events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentsChanged:
    added: tuple[Document, ...] = ()
    removed: tuple[Document, ...] = ()


@dataclass(frozen=True)
class MarkerRaised:
    pass


@dataclass(frozen=True)
class TextChanged:
    text: str
    has_marker: bool


@dataclass(frozen=True)
class NoChange:
    pass


ChangeEvent = Union[DocumentsChanged, MarkerRaised, TextChanged, NoChange]
