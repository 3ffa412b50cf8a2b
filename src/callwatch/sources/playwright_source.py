"""
Headless-browser snapshot source for the monitored listing.

Opens the listing with Chromium, locates the first table row that contains
the announcement title, checks for the update-marker icon inside it and
screenshots the row. When a documents page is configured, its table rows
are read into Document records with links resolved against the base URL.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from ..monitor.models import Document, Snapshot, unique_by_url
from .base import SnapshotFetchError

logger = structlog.get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 720}

_WHITESPACE = re.compile(r"\s+")
_DATE = re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b")

# Runs in the page: flattens document table rows, carrying the last header
# row seen as the section name.
_ROWS_SCRIPT = """
(rows, markerSelector) => {
    let section = "";
    const out = [];
    for (const row of rows) {
        const link = row.querySelector("a[href]");
        const header = row.querySelector("th");
        if (!link) {
            if (header) section = header.innerText;
            continue;
        }
        out.push({
            section: section,
            name: link.innerText,
            href: link.getAttribute("href"),
            cells: Array.from(row.querySelectorAll("td")).map((td) => td.innerText),
            is_new: markerSelector ? row.querySelector(markerSelector) !== null : false,
        });
    }
    return out;
}
"""


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def build_documents(raw_rows: list[dict[str, Any]], base_url: str) -> list[Document]:
    """
    Convert raw table rows into Documents.

    Relative links are resolved against ``base_url``; rows without a link
    are skipped and duplicate urls keep their first occurrence.
    """
    documents = []
    for row in raw_rows:
        href = (row.get("href") or "").strip()
        if not href:
            continue
        date = ""
        for cell in row.get("cells") or []:
            match = _DATE.search(cell or "")
            if match:
                date = match.group(0)
                break
        documents.append(
            Document(
                section=normalize_text(row.get("section", "")),
                name=normalize_text(row.get("name", "")) or href,
                url=urljoin(base_url, href),
                date=date,
                is_new=bool(row.get("is_new", False)),
            )
        )
    return unique_by_url(documents)


class PlaywrightSnapshotSource:
    """SnapshotSource backed by headless Chromium."""

    def __init__(
        self,
        target_url: str,
        target_text: str,
        marker_selector: str,
        base_url: str = "",
        documents_url: str = "",
        documents_selector: str = "table tr",
        screenshot_path: Optional[str | Path] = None,
        navigation_timeout_ms: int = 60_000,
    ):
        self.target_url = target_url
        self.target_text = target_text
        self.marker_selector = marker_selector
        self.base_url = base_url or target_url
        self.documents_url = documents_url
        self.documents_selector = documents_selector
        self.screenshot_path = Path(screenshot_path) if screenshot_path else None
        self.navigation_timeout_ms = navigation_timeout_ms

    async def fetch(self) -> Snapshot:
        logger.info("snapshot_fetch_started", target_url=self.target_url)
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                try:
                    context = await browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
                    page = await context.new_page()
                    return await self._read_listing(page)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            logger.error("snapshot_fetch_failed", error=str(e), error_type=type(e).__name__)
            raise SnapshotFetchError(str(e)) from e

    async def _read_listing(self, page: Page) -> Snapshot:
        await page.goto(self.target_url, wait_until="networkidle", timeout=self.navigation_timeout_ms)

        row = page.locator("tr", has_text=self.target_text).first
        if await row.count() == 0:
            logger.info("announcement_not_found", target_text=self.target_text)
            return Snapshot(found=False)

        summary_text = normalize_text(await row.inner_text())
        has_marker = await row.locator(self.marker_selector).count() > 0

        image = None
        if self.screenshot_path is not None:
            self.screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            await row.screenshot(path=str(self.screenshot_path))
            image = self.screenshot_path

        documents = None
        if self.documents_url:
            documents = await self._read_documents(page)

        logger.info(
            "announcement_found",
            has_marker=has_marker,
            document_count=len(documents) if documents is not None else None,
        )
        return Snapshot(
            found=True,
            has_marker=has_marker,
            summary_text=summary_text,
            documents=documents,
            image=image,
        )

    async def _read_documents(self, page: Page) -> list[Document]:
        await page.goto(self.documents_url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        raw_rows = await page.locator(self.documents_selector).evaluate_all(
            _ROWS_SCRIPT, self.marker_selector
        )
        return build_documents(raw_rows, self.base_url)
