"""Gateway command handlers: status, subscribe, unsubscribe, stats."""

from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable
from html import escape
from typing import Optional

import structlog

from ..monitor.models import Snapshot
from ..persistence.state import load_state
from ..persistence.subscribers import RemoveResult, SubscriberRegistry
from ..sources.base import SnapshotFetchError, SnapshotSource, fetch_snapshot

logger = structlog.get_logger(__name__)


class CooldownRegistry:
    """Minimum interval between on-demand requests, per recipient (in memory)."""

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self.clock = clock
        self._last_request: dict[str, float] = {}

    def remaining(self, recipient_id: str) -> float:
        """Seconds left in the window for ``recipient_id`` (0 when allowed)."""
        last = self._last_request.get(str(recipient_id))
        if last is None:
            return 0.0
        return max(0.0, self.window_seconds - (self.clock() - last))

    def acquire(self, recipient_id: str) -> float:
        """
        Record a request if the window has elapsed.

        Returns:
            0.0 when the request is allowed, otherwise the remaining wait.
            Rejected requests do not extend the window.
        """
        wait = self.remaining(recipient_id)
        if wait > 0:
            return wait
        self._last_request[str(recipient_id)] = self.clock()
        return 0.0


def format_status(snapshot: Snapshot) -> str:
    """Reply body for a live status query."""
    if snapshot.has_marker:
        lines = ["⭐ The update marker IS active."]
    else:
        lines = ["❌ No update marker at the moment."]

    if snapshot.documents is not None:
        lines.append("")
        if snapshot.documents:
            lines.append(f"📄 <b>Documents ({len(snapshot.documents)}):</b>")
            for doc in snapshot.documents:
                line = f"• {escape(doc.section)}: <a href=\"{escape(doc.url, quote=True)}\">{escape(doc.name)}</a>"
                if doc.date:
                    line += f" ({escape(doc.date)})"
                lines.append(line)
        else:
            lines.append("📄 No documents attached.")
    return "\n".join(lines)


class CommandService:
    """
    On-demand requests from chat users.

    Status queries always read the live page and never write persisted
    state; they are rate limited per chat by a CooldownRegistry.
    """

    def __init__(
        self,
        source: SnapshotSource,
        registry: SubscriberRegistry,
        cooldown: CooldownRegistry,
        fetch_timeout_seconds: float = 90,
    ):
        self.source = source
        self.registry = registry
        self.cooldown = cooldown
        self.fetch_timeout_seconds = fetch_timeout_seconds

    async def handle_status(
        self,
        chat_id: str,
        on_accepted: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> str:
        """Handle /status (alias /star).

        ``on_accepted`` is awaited once the request passes the cooldown,
        before the live fetch starts.
        """
        wait = self.cooldown.acquire(chat_id)
        if wait > 0:
            seconds = math.ceil(wait)
            logger.info("status_request_throttled", chat_id=chat_id, retry_after=seconds)
            return f"⏳ Please wait {seconds}s before checking again."

        logger.info("status_request", chat_id=chat_id)
        if on_accepted is not None:
            await on_accepted()
        try:
            snapshot = await fetch_snapshot(self.source, self.fetch_timeout_seconds)
        except SnapshotFetchError as e:
            logger.error("status_fetch_failed", chat_id=chat_id, error=str(e))
            return "❌ Error while querying the page. Try again later."

        if not snapshot.found:
            return "❌ The announcement is not on the listing."
        return format_status(snapshot)

    async def handle_subscribe(self, chat_id: str) -> str:
        if await self.registry.add(chat_id):
            return "✅ Subscribed. You will be notified of changes."
        return "ℹ️ You are already subscribed."

    async def handle_unsubscribe(self, chat_id: str) -> str:
        result = await self.registry.remove(chat_id)
        if result is RemoveResult.NOT_PERMITTED:
            return "🚫 The administrator cannot unsubscribe."
        if result is RemoveResult.NOT_SUBSCRIBED:
            return "ℹ️ You were not subscribed."
        return "👋 Unsubscribed. You will no longer receive notifications."

    async def handle_stats(self, chat_id: str) -> Optional[str]:
        """Admin only. Returns None for anyone else (no reply)."""
        if str(chat_id) != self.registry.admin_id:
            logger.warning("unauthorized_stats_command", chat_id=chat_id)
            return None

        state = await load_state()
        last_check = state.last_check.isoformat(timespec="seconds") if state.last_check else "never"
        return (
            "📊 <b>Stats</b>\n\n"
            f"Subscribers: {self.registry.count()}\n"
            f"Last successful check: {last_check}\n"
            f"Marker active: {'yes' if state.has_marker else 'no'}\n"
            f"Tracked documents: {len(state.documents)}"
        )
