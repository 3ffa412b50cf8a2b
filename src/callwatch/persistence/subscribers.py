"""Subscriber registry: who receives broadcast notifications."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum

import aiosqlite
import structlog

from .db import get_db

logger = structlog.get_logger(__name__)


class RemoveResult(str, Enum):
    REMOVED = "removed"
    NOT_SUBSCRIBED = "not_subscribed"
    NOT_PERMITTED = "not_permitted"


class SubscriberRegistry:
    """
    Set of recipient chat ids, persisted in full after every mutation.

    The admin chat id is a permanent member: it is part of every loaded set
    and can never be removed.
    """

    def __init__(self, admin_id: str):
        self.admin_id = str(admin_id)
        self._members: set[str] = {self.admin_id}

    async def load(self) -> set[str]:
        """Load the persisted set, defaulting to ``{admin}`` if missing or unreadable."""
        members = await self._read()
        members.add(self.admin_id)
        self._members = members
        logger.info("subscribers_loaded", count=len(self._members))
        return set(self._members)

    async def add(self, recipient_id: str) -> bool:
        """Add a recipient. Returns False if it was already subscribed."""
        recipient_id = str(recipient_id)
        if recipient_id in self._members:
            return False
        self._members.add(recipient_id)
        await self._write()
        logger.info("subscriber_added", chat_id=recipient_id, count=len(self._members))
        return True

    async def remove(self, recipient_id: str) -> RemoveResult:
        """Remove a recipient. The admin recipient is never removed."""
        recipient_id = str(recipient_id)
        if recipient_id == self.admin_id:
            logger.warning("admin_unsubscribe_refused", chat_id=recipient_id)
            return RemoveResult.NOT_PERMITTED
        if recipient_id not in self._members:
            return RemoveResult.NOT_SUBSCRIBED
        self._members.discard(recipient_id)
        await self._write()
        logger.info("subscriber_removed", chat_id=recipient_id, count=len(self._members))
        return RemoveResult.REMOVED

    def count(self) -> int:
        return len(self._members)

    def members(self) -> list[str]:
        """Stable, sorted copy of the current members."""
        return sorted(self._members)

    def __contains__(self, recipient_id: object) -> bool:
        return str(recipient_id) in self._members

    async def _read(self) -> set[str]:
        try:
            db = await get_db()
            cursor = await db.execute("SELECT payload FROM subscribers WHERE id = 1")
            row = await cursor.fetchone()
            await cursor.close()
        except aiosqlite.Error as e:
            logger.warning("subscribers_load_failed", error=str(e))
            return set()

        if row is None:
            return set()

        try:
            data = json.loads(row[0])
        except (TypeError, ValueError) as e:
            logger.warning("subscribers_record_corrupt", error=str(e))
            return set()
        if not isinstance(data, list):
            logger.warning("subscribers_record_corrupt", error=f"expected list, got {type(data).__name__}")
            return set()
        return {str(item) for item in data}

    async def _write(self) -> None:
        # In-memory membership stays authoritative when the write fails
        payload = json.dumps(sorted(self._members))
        try:
            db = await get_db()
            await db.execute(
                """
                INSERT INTO subscribers (id, payload, updated_at)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (payload, int(datetime.now().timestamp())),
            )
            await db.commit()
        except aiosqlite.Error as e:
            logger.error("subscribers_save_failed", error=str(e), count=len(self._members))
