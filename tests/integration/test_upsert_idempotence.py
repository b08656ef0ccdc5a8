"""
Integration tests for field-level upsert conflict rules (requires PostgreSQL)
"""

import pytest
from datetime import datetime, timezone
from sqlalchemy import select
from ingestion.loaders.postgres_loader import PostgresLoader
from models.base import StationType
from models.reading import Reading
from models.station import Station
from schemas.records import ReadingUpsert, StationUpsert

T1 = datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)


async def seed_station(loader, **kwargs):
    values = dict(
        station_id="S1", name="Sungai Ara", state="PNG", district="Barat Daya",
        station_type=StationType.RAINFALL, source="publicinfobanjir",
    )
    values.update(kwargs)
    await loader.upsert_stations([StationUpsert(**values)])


@pytest.mark.asyncio
async def test_station_state_and_district_never_regress(db_session):
    loader = PostgresLoader(db_session)
    await seed_station(loader)
    await seed_station(loader, state=None, district=None, station_type=StationType.WATER_LEVEL, name="Sg. Ara")

    station = (await db_session.execute(select(Station))).scalar_one()
    await db_session.refresh(station)
    assert station.state == "PNG"
    assert station.district == "Barat Daya"
    assert station.name == "Sg. Ara"
    assert station.station_type == "water_level"
    assert station.is_active is True


@pytest.mark.asyncio
async def test_reading_batch_twice_equals_once(db_session):
    loader = PostgresLoader(db_session)
    await seed_station(loader)
    batch = [
        ReadingUpsert(station_id="S1", recorded_at=T1, rain_mm=5.0, source="A"),
        ReadingUpsert(station_id="S1", recorded_at=T1, river_level_m=2.0, source="B"),
    ]

    await loader.upsert_readings(batch)
    first = [(r.rain_mm, r.river_level_m, r.source) for r in (await db_session.execute(select(Reading))).scalars().all()]
    await loader.upsert_readings(batch)
    db_session.expire_all()
    second = [(r.rain_mm, r.river_level_m, r.source) for r in (await db_session.execute(select(Reading))).scalars().all()]

    assert first == second == [(5.0, 2.0, "B")]


@pytest.mark.asyncio
async def test_null_measurement_does_not_overwrite(db_session):
    loader = PostgresLoader(db_session)
    await seed_station(loader)

    await loader.upsert_readings([ReadingUpsert(station_id="S1", recorded_at=T1, rain_mm=5.0, source="A")])
    await loader.upsert_readings([ReadingUpsert(station_id="S1", recorded_at=T1, river_level_m=2.0, source="B")])

    db_session.expire_all()
    reading = (await db_session.execute(select(Reading))).scalar_one()
    assert reading.rain_mm == 5.0
    assert reading.river_level_m == 2.0
    assert reading.source == "B"


@pytest.mark.asyncio
async def test_list_active_stations_by_region(db_session):
    loader = PostgresLoader(db_session)
    await seed_station(loader)
    await seed_station(loader, station_id="S2", state="KDH")

    stations = await loader.list_active_stations("PNG")
    assert [s.station_id for s in stations] == ["S1"]
