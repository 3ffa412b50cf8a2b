"""One full check: fetch, diff, notify, persist."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

from ..gateway.broadcast import BroadcastDispatcher, BroadcastReport
from ..persistence.state import load_state, save_state
from ..sources.base import SnapshotFetchError, SnapshotSource, fetch_snapshot
from .composer import compose_notification
from .detector import detect_change
from .models import ChangeEvent, PersistedState

logger = structlog.get_logger(__name__)


class CheckStatus(str, Enum):
    ERROR = "error"
    NOT_FOUND = "not_found"
    NO_CHANGE = "no_change"
    NOTIFIED = "notified"


@dataclass
class CheckOutcome:
    status: CheckStatus
    event: Optional[ChangeEvent] = None
    report: Optional[BroadcastReport] = None
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckPipeline:
    """
    Snapshot source -> change detector -> composer -> dispatcher -> state store.

    Persisted state is only written after a successful, found snapshot; a
    fetch error or a missing announcement leaves it untouched.
    """

    def __init__(
        self,
        source: SnapshotSource,
        dispatcher: BroadcastDispatcher,
        source_link: str,
        fetch_timeout_seconds: float = 90,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self.source_link = source_link
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.clock = clock

    async def run_check(self) -> CheckOutcome:
        logger.info("check_started")
        try:
            snapshot = await fetch_snapshot(self.source, self.fetch_timeout_seconds)
        except SnapshotFetchError as e:
            logger.error("check_fetch_failed", error=str(e))
            return CheckOutcome(status=CheckStatus.ERROR, error=str(e))

        if not snapshot.found:
            logger.info("check_target_not_found")
            return CheckOutcome(status=CheckStatus.NOT_FOUND)

        previous = await load_state()
        event = detect_change(previous, snapshot)
        notification = compose_notification(event, snapshot, self.source_link)

        report = None
        if notification is not None:
            report = await self.dispatcher.broadcast(notification)
        else:
            logger.info("check_no_change")

        await save_state(PersistedState.from_snapshot(snapshot, self.clock()))

        status = CheckStatus.NOTIFIED if report is not None else CheckStatus.NO_CHANGE
        logger.info("check_finished", status=status.value, event=type(event).__name__)
        return CheckOutcome(status=status, event=event, report=report)
