"""Snapshot source contract."""

from __future__ import annotations

import asyncio
from typing import Protocol

from ..monitor.models import Snapshot


class SnapshotFetchError(Exception):
    """The listing could not be read (navigation failure, timeout, ...)."""


class SnapshotSource(Protocol):
    """Produces a Snapshot of the listing. Must not touch persisted state."""

    async def fetch(self) -> Snapshot:
        """
        Raises:
            SnapshotFetchError: If the page could not be read
        """
        ...


async def fetch_snapshot(source: SnapshotSource, timeout_seconds: float) -> Snapshot:
    """
    Fetch with a hard time box.

    Raises:
        SnapshotFetchError: On source failure or timeout
    """
    try:
        return await asyncio.wait_for(source.fetch(), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise SnapshotFetchError(f"fetch timed out after {timeout_seconds}s") from e
