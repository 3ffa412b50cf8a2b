"""Delivery of one notification to every subscriber."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import structlog

from ..monitor.composer import Notification
from ..persistence.subscribers import SubscriberRegistry
from .formatters import fits_caption, format_for_telegram, html_to_plain

logger = structlog.get_logger(__name__)


class PrimaryTransport(Protocol):
    async def send_text(self, recipient: str, text: str) -> bool: ...

    async def send_image(self, recipient: str, image: Path, caption: Optional[str]) -> bool: ...


class SecondaryPublisher(Protocol):
    async def publish(
        self,
        topic: str,
        body: str,
        *,
        title: str = "",
        priority: int = 3,
        tags: Optional[list[str]] = None,
    ) -> None: ...


@dataclass
class BroadcastReport:
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    secondary_ok: Optional[bool] = None  # None: channel not configured


class BroadcastDispatcher:
    """
    Deliver a Notification to every subscriber, then to the secondary channel.

    Failures are per recipient: a transport error, a blocked chat or a
    timeout is logged and delivery continues with the next recipient. The
    secondary channel never affects the primary outcome.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        transport: PrimaryTransport,
        send_timeout_seconds: float = 30,
        secondary: Optional[SecondaryPublisher] = None,
        secondary_topic: str = "",
        secondary_priority: int = 4,
        secondary_tags: Optional[list[str]] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.send_timeout_seconds = send_timeout_seconds
        self.secondary = secondary
        self.secondary_topic = secondary_topic
        self.secondary_priority = secondary_priority
        self.secondary_tags = secondary_tags or []

    async def broadcast(self, notification: Notification) -> BroadcastReport:
        report = BroadcastReport()
        image = notification.image
        if image is not None and not Path(image).is_file():
            logger.warning("broadcast_image_missing", image=str(image))
            image = None

        for recipient in self.registry.members():
            if await self._deliver(recipient, notification.text, image):
                report.delivered.append(recipient)
            else:
                report.failed.append(recipient)

        logger.info(
            "broadcast_complete",
            delivered=len(report.delivered),
            failed=len(report.failed),
        )

        if self.secondary is not None and self.secondary_topic:
            report.secondary_ok = await self._publish_secondary(notification)
        return report

    async def _deliver(self, recipient: str, text: str, image: Optional[Path]) -> bool:
        try:
            return await asyncio.wait_for(
                self._send(recipient, text, image),
                timeout=self.send_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("broadcast_delivery_timeout", chat_id=recipient, timeout=self.send_timeout_seconds)
        except Exception as e:
            logger.error(
                "broadcast_delivery_failed",
                chat_id=recipient,
                error=str(e),
                error_type=type(e).__name__,
            )
        return False

    async def _send(self, recipient: str, text: str, image: Optional[Path]) -> bool:
        if image is None:
            return await self._send_chunks(recipient, text)
        if fits_caption(text):
            return await self.transport.send_image(recipient, image, text)
        # Caption too long: photo first, then the full text
        if not await self.transport.send_image(recipient, image, None):
            return False
        return await self._send_chunks(recipient, text)

    async def _send_chunks(self, recipient: str, text: str) -> bool:
        for chunk in format_for_telegram(text):
            if not await self.transport.send_text(recipient, chunk):
                return False
        return True

    async def _publish_secondary(self, notification: Notification) -> bool:
        try:
            await asyncio.wait_for(
                self.secondary.publish(
                    self.secondary_topic,
                    html_to_plain(notification.text),
                    title=notification.title,
                    priority=self.secondary_priority,
                    tags=self.secondary_tags,
                ),
                timeout=self.send_timeout_seconds,
            )
            return True
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "secondary_publish_failed",
                topic=self.secondary_topic,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
