"""Snapshot sources: the contract and the headless-browser implementation."""

from .base import SnapshotFetchError, SnapshotSource, fetch_snapshot

__all__ = ["SnapshotFetchError", "SnapshotSource", "fetch_snapshot"]
