"""Persistence of the last known listing state (singleton record)."""

from __future__ import annotations

import json
from datetime import datetime

import aiosqlite
import structlog

from ..monitor.models import PersistedState
from .db import get_db

logger = structlog.get_logger(__name__)


async def load_state() -> PersistedState:
    """
    Load the last persisted state.

    A missing or unparsable record is treated as "no prior state": the empty
    default is returned and a warning is logged.
    """
    try:
        db = await get_db()
        cursor = await db.execute("SELECT payload FROM monitor_state WHERE id = 1")
        row = await cursor.fetchone()
        await cursor.close()
    except aiosqlite.Error as e:
        logger.warning("state_load_failed", error=str(e), error_type=type(e).__name__)
        return PersistedState()

    if row is None:
        return PersistedState()

    try:
        return PersistedState.from_dict(json.loads(row[0]))
    except (TypeError, ValueError, KeyError) as e:
        logger.warning("state_record_corrupt", error=str(e), error_type=type(e).__name__)
        return PersistedState()


async def save_state(state: PersistedState) -> bool:
    """
    Replace the persisted record with ``state``.

    Write failures are logged and reported through the return value; they
    never propagate to the caller.
    """
    payload = json.dumps(state.to_dict(), ensure_ascii=False)
    try:
        db = await get_db()
        await db.execute(
            """
            INSERT INTO monitor_state (id, payload, updated_at)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
            """,
            (payload, int(datetime.now().timestamp())),
        )
        await db.commit()
    except aiosqlite.Error as e:
        logger.error("state_save_failed", error=str(e), error_type=type(e).__name__)
        return False

    logger.info(
        "state_saved",
        has_marker=state.has_marker,
        document_count=len(state.documents),
    )
    return True
