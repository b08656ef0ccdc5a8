"""
PublicInfoBanjir source adapter.

This module retrieves one region's rainfall and water level rows with:
- Concurrent loading of the rainfall and water level pages
- Whole-sequence retry (load + parse both pages) on any failure
- Fallback to the JSON feed once the primary retries are exhausted
"""

import asyncio
from typing import Iterable, List, Optional, Tuple
from urllib.parse import quote

from core.config import Settings, settings as default_settings
from core.exceptions import PrimarySourceError
from core.reference import ReferenceData, DEFAULT_REFERENCE
from ingestion.extractors.fallback_feed import FallbackFeedClient
from ingestion.extractors.page_loader import (
    DATA_TABLE_ID,
    PageLoader,
    PlaywrightPageLoader,
    extract_table,
)
from ingestion.transformers.normalizer import RowNormalizer, find_daily_dates
from models.base import SourceMode
from schemas.records import (
    FallbackRainRow,
    FallbackWaterRow,
    RainTableRow,
    SkippedRow,
    SourceFetchResult,
    WaterTableRow,
)
import logging

logger = logging.getLogger(__name__)

WAIT_SELECTOR = f"#{DATA_TABLE_ID} tbody tr td"


class PIBSourceAdapter:
    """
    Fetch a region from the rendered portal pages, else from the JSON feed.

    Attributes:
        max_retries: Additional attempts of the primary sequence (default: 1)
        retry_delay: Initial delay between primary attempts in seconds (default: 1.0)
    """

    def __init__(
        self,
        page_loader: PageLoader,
        fallback_client: FallbackFeedClient,
        rainfall_url: str = default_settings.PIB_RAINFALL_URL,
        water_level_url: str = default_settings.PIB_WATER_LEVEL_URL,
        normalizer: Optional[RowNormalizer] = None,
        max_retries: int = 1,
        retry_delay: float = 1.0
    ):
        self.page_loader = page_loader
        self.fallback_client = fallback_client
        self.rainfall_url = rainfall_url
        self.water_level_url = water_level_url
        self.normalizer = normalizer or RowNormalizer()
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(
        cls,
        config: Settings = default_settings,
        reference: ReferenceData = DEFAULT_REFERENCE
    ) -> "PIBSourceAdapter":
        return cls(
            page_loader=PlaywrightPageLoader(
                navigation_timeout=config.PAGE_NAVIGATION_TIMEOUT_SECONDS,
                selector_timeout=config.PAGE_SELECTOR_TIMEOUT_SECONDS,
            ),
            fallback_client=FallbackFeedClient(
                url=config.PIB_FALLBACK_URL,
                timeout=config.FALLBACK_TIMEOUT_SECONDS,
            ),
            rainfall_url=config.PIB_RAINFALL_URL,
            water_level_url=config.PIB_WATER_LEVEL_URL,
            normalizer=RowNormalizer(reference),
            max_retries=config.PRIMARY_MAX_RETRIES,
        )

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def fetch_region(self, region: str) -> SourceFetchResult:
        """
        Retrieve rows for a region.

        Returns:
            SourceFetchResult with mode "primary" or "fallback"

        Raises:
            FallbackSourceError: If the primary source failed and the feed is unusable
        """
        try:
            return await self.fetch_primary(region)
        except PrimarySourceError as e:
            logger.warning(
                f"Primary source exhausted for {region}, switching to fallback feed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
        return await self.fetch_fallback(region)

    # ------------------------------------------------------------------
    # Primary path
    # ------------------------------------------------------------------

    def page_url(self, template: str, region: str) -> str:
        return template.format(state=quote(region, safe=""))

    async def fetch_primary(self, region: str) -> SourceFetchResult:
        attempts = self.max_retries + 1
        last_exception: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_primary_once(region)

            except Exception as e:
                last_exception = e
                logger.warning(
                    f"Primary scrape attempt {attempt}/{attempts} failed for {region}: "
                    f"{type(e).__name__}: {e}"
                )
                if attempt < attempts and self.retry_delay > 0:
                    await asyncio.sleep(self.retry_delay * (2 ** (attempt - 1)))

        raise PrimarySourceError(
            f"Primary source failed after {attempts} attempts",
            context={"region": region, "attempts": attempts},
            original_exception=last_exception
        )

    async def _fetch_primary_once(self, region: str) -> SourceFetchResult:
        rain_task = asyncio.ensure_future(self._scrape_rain(region))
        water_task = asyncio.ensure_future(self._scrape_water(region))
        try:
            (rain_rows, rain_skipped), (water_rows, water_skipped) = await asyncio.gather(
                rain_task, water_task
            )
        except BaseException:
            # No page load may outlive a failed attempt
            for task in (rain_task, water_task):
                task.cancel()
            await asyncio.gather(rain_task, water_task, return_exceptions=True)
            raise

        logger.info(
            f"Scraped {region}: rain={len(rain_rows)}, water_level={len(water_rows)}, "
            f"skipped={len(rain_skipped) + len(water_skipped)}"
        )

        return SourceFetchResult(
            region=region,
            mode=SourceMode.PRIMARY,
            rain_rows=rain_rows,
            water_rows=water_rows,
            skipped_rows=rain_skipped + water_skipped,
        )

    async def _scrape_rain(self, region: str) -> Tuple[List[RainTableRow], List[SkippedRow]]:
        html = await self.page_loader.load(self.page_url(self.rainfall_url, region), WAIT_SELECTOR)
        table = extract_table(html)
        daily_dates = find_daily_dates(table.header_rows)
        if not daily_dates:
            logger.debug(f"No daily date header on rainfall page for {region}")

        return _split(self.normalizer.rain_row(cells, daily_dates) for cells in table.body_rows)

    async def _scrape_water(self, region: str) -> Tuple[List[WaterTableRow], List[SkippedRow]]:
        html = await self.page_loader.load(self.page_url(self.water_level_url, region), WAIT_SELECTOR)
        table = extract_table(html)

        return _split(self.normalizer.water_row(cells) for cells in table.body_rows)

    # ------------------------------------------------------------------
    # Fallback path
    # ------------------------------------------------------------------

    async def fetch_fallback(self, region: str) -> SourceFetchResult:
        items = await self.fallback_client.fetch()

        rain_rows: List[FallbackRainRow] = []
        water_rows: List[FallbackWaterRow] = []
        skipped: List[SkippedRow] = []

        for item in items:
            for row in self.normalizer.feed_rows(item, region):
                if isinstance(row, FallbackRainRow):
                    rain_rows.append(row)
                elif isinstance(row, FallbackWaterRow):
                    water_rows.append(row)
                else:
                    skipped.append(row)

        logger.info(
            f"Fallback feed for {region}: rain={len(rain_rows)}, "
            f"water_level={len(water_rows)}, skipped={len(skipped)}"
        )

        return SourceFetchResult(
            region=region,
            mode=SourceMode.FALLBACK,
            rain_rows=rain_rows,
            water_rows=water_rows,
            skipped_rows=skipped,
        )


def _split(rows: Iterable) -> Tuple[list, List[SkippedRow]]:
    kept, skipped = [], []
    for row in rows:
        if isinstance(row, SkippedRow):
            skipped.append(row)
        else:
            kept.append(row)
    return kept, skipped
