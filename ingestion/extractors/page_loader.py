"""
Rendered page loading and data table extraction.

The portal renders its tables client side, so pages are loaded in headless
Chromium and handed back as HTML. Everything downstream only sees
"a loaded page as HTML" and "rows of text", never browser objects.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from bs4 import BeautifulSoup
from playwright.async_api import async_playwright, Error as PlaywrightError

from core.exceptions import PrimarySourceError, TableNotFoundError
import logging

logger = logging.getLogger(__name__)

DATA_TABLE_ID = "normaltable1"


class PageLoader(Protocol):
    """Capability: return the HTML of a page once `wait_selector` has appeared."""

    async def load(self, url: str, wait_selector: Optional[str] = None) -> str:
        ...


class PlaywrightPageLoader:
    """
    Load pages with Playwright (headless Chromium).

    Attributes:
        navigation_timeout: Seconds allowed for page.goto
        selector_timeout: Seconds allowed for the wait selector to appear
    """

    def __init__(self, navigation_timeout: float = 60.0, selector_timeout: float = 30.0):
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout

    async def load(self, url: str, wait_selector: Optional[str] = None) -> str:
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=True)
                try:
                    page = await browser.new_page()
                    await page.goto(
                        url,
                        wait_until="domcontentloaded",
                        timeout=self.navigation_timeout * 1000,
                    )
                    if wait_selector:
                        await page.wait_for_selector(
                            wait_selector,
                            timeout=self.selector_timeout * 1000,
                        )
                    return await page.content()
                finally:
                    await browser.close()

        except PlaywrightError as e:
            # Covers playwright's TimeoutError as well
            raise PrimarySourceError(
                "Page load failed",
                context={"url": url, "wait_selector": wait_selector},
                original_exception=e
            )


@dataclass
class ExtractedTable:
    """Text content of one HTML table."""
    header_rows: List[List[str]] = field(default_factory=list)
    body_rows: List[List[str]] = field(default_factory=list)


def _cell_text(element) -> str:
    return re.sub(r"\s+", " ", element.get_text() or "").strip()


def extract_table(html: str, table_id: str = DATA_TABLE_ID) -> ExtractedTable:
    """
    Extract header (th) and body (td) text rows from the table with `table_id`.

    Header structure uses rowspan/colspan, so no column alignment is assumed;
    callers map body cells by position.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table", id=table_id)
    if table is None:
        raise TableNotFoundError(
            f"Table #{table_id} not found",
            context={"table_id": table_id, "html_length": len(html or "")}
        )

    header_rows = []
    for tr in table.select("thead tr"):
        texts = [_cell_text(th) for th in tr.find_all("th", recursive=False)]
        texts = [t for t in texts if t]
        if texts:
            header_rows.append(texts)

    body_rows = []
    for tr in table.select("tbody tr"):
        cells = [_cell_text(td) for td in tr.find_all("td", recursive=False)]
        if cells:
            body_rows.append(cells)

    return ExtractedTable(header_rows=header_rows, body_rows=body_rows)
