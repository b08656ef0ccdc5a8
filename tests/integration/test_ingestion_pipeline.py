"""
Integration tests for the complete region ingestion pipeline (requires PostgreSQL)
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from sqlalchemy import select
from ingestion.extractors.pib_extractor import PIBSourceAdapter
from ingestion.runner import IngestionRunner
from models.reading import Reading
from models.station import Station

RAIN_URL = "https://example.test/rain?state={state}"
WATER_URL = "https://example.test/water?state={state}"


class StaticPageLoader:
    def __init__(self, pages=None):
        self.pages = pages

    async def load(self, url, wait_selector=None):
        if self.pages is None:
            raise TimeoutError("navigation timeout")
        return self.pages[url]


def adapter_for(pages=None, feed=None):
    feed_client = AsyncMock()
    feed_client.fetch.return_value = feed or []
    return PIBSourceAdapter(
        page_loader=StaticPageLoader(pages),
        fallback_client=feed_client,
        rainfall_url=RAIN_URL,
        water_level_url=WATER_URL,
        max_retries=1,
        retry_delay=0,
    )


@pytest.mark.asyncio
async def test_primary_ingestion_persists_stations_and_readings(
    db_session, make_rain_page, make_water_page, rain_cells, water_cells
):
    """
    Integration test: Scrape -> Reconcile -> Upsert -> Verify
    """
    pages = {
        RAIN_URL.format(state="PNG"): make_rain_page([rain_cells]),
        WATER_URL.format(state="PNG"): make_water_page([water_cells]),
    }
    runner = IngestionRunner(db_session, adapter_for(pages))

    result = await runner.run("PNG")

    assert result.mode == "primary"
    assert result.upserted_stations == 2
    assert result.merged_readings == 2

    stations = (await db_session.execute(select(Station).order_by(Station.station_id))).scalars().all()
    assert [s.station_id for s in stations] == ["3613001", "5606410"]
    assert all(s.state == "PNG" and s.is_active for s in stations)

    readings = (await db_session.execute(select(Reading).order_by(Reading.station_id))).scalars().all()
    assert readings[0].rain_mm == 0.5
    assert readings[0].recorded_at == datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)
    assert readings[1].river_level_m == 1.23


@pytest.mark.asyncio
async def test_repeated_run_creates_no_duplicates(
    db_session, make_rain_page, make_water_page, rain_cells, water_cells
):
    pages = {
        RAIN_URL.format(state="PNG"): make_rain_page([rain_cells]),
        WATER_URL.format(state="PNG"): make_water_page([water_cells]),
    }
    runner = IngestionRunner(db_session, adapter_for(pages))

    await runner.run("PNG")
    await runner.run("PNG")

    assert len((await db_session.execute(select(Station))).scalars().all()) == 2
    assert len((await db_session.execute(select(Reading))).scalars().all()) == 2


@pytest.mark.asyncio
async def test_fallback_matches_stations_from_earlier_primary_run(
    db_session, make_rain_page, make_water_page, rain_cells, water_cells, feed_items
):
    pages = {
        RAIN_URL.format(state="PNG"): make_rain_page([rain_cells]),
        WATER_URL.format(state="PNG"): make_water_page([water_cells]),
    }
    await IngestionRunner(db_session, adapter_for(pages)).run("PNG")

    # Fallback reports a later timestamp for Sungai Ara (no district) -> name + region match
    feed = [dict(feed_items[0], i="15/01/2024 15:00"), feed_items[1], feed_items[2]]
    result = await IngestionRunner(db_session, adapter_for(None, feed)).run("PNG")

    assert result.mode == "fallback"
    assert result.upserted_stations == 0
    assert result.merged_readings == 2

    later = (await db_session.execute(
        select(Reading).where(
            Reading.station_id == "3613001",
            Reading.recorded_at == datetime(2024, 1, 15, 7, 0, tzinfo=timezone.utc),
        )
    )).scalar_one()
    assert later.rain_mm == 4.5
    assert later.source == "publicinfobanjir_json"

    # Same (station, timestamp) as the primary row: level updated, source overwritten
    merged = (await db_session.execute(
        select(Reading).where(Reading.station_id == "5606410")
    )).scalar_one()
    assert merged.river_level_m == 1.30
    assert merged.source == "publicinfobanjir_json"


@pytest.mark.asyncio
async def test_empty_tables_write_nothing(db_session, make_rain_page, make_water_page):
    pages = {
        RAIN_URL.format(state="PLS"): make_rain_page([]),
        WATER_URL.format(state="PLS"): make_water_page([]),
    }
    result = await IngestionRunner(db_session, adapter_for(pages)).run("PLS")

    assert result.upserted_stations == 0
    assert result.affected_readings == 0
    assert (await db_session.execute(select(Station))).scalars().all() == []
