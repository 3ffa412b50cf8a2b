"""Secondary push channel: topic-based publishing to an ntfy server."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class NtfyPublisher:
    """
    Publish to an ntfy server using its JSON API.

    JSON publishing (POST to the server root) keeps non-ASCII titles and
    tags out of HTTP headers.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def publish(
        self,
        topic: str,
        body: str,
        *,
        title: str = "",
        priority: int = 3,
        tags: Optional[list[str]] = None,
    ) -> None:
        """
        Publish one message.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response
        """
        payload = {
            "topic": topic,
            "message": body,
            "priority": priority,
        }
        if title:
            payload["title"] = title
        if tags:
            payload["tags"] = list(tags)

        if self._client is not None:
            response = await self._client.post(
                self.base_url + "/", json=payload, timeout=self.timeout_seconds
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.base_url + "/", json=payload)
        response.raise_for_status()
        logger.info("ntfy_published", topic=topic, status_code=response.status_code)
