"""
Reading endpoints: latest value per station and direct readings ingest
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from pydantic import ValidationError
from api.dependencies import get_db
from core.config import settings
from core.exceptions import UpsertError
from ingestion.loaders.postgres_loader import PostgresLoader
from models.reading import Reading
from models.station import Station
from schemas.api import (
    LatestRainReading,
    LatestRainResponse,
    LatestWaterLevelReading,
    LatestWaterLevelResponse,
    ReadingsIngestRequest,
    ReadingsIngestResponse,
)
from ingestion.transformers.normalizer import canonical_region
from schemas.records import ReadingUpsert
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Readings"])


def latest_readings_query(measurement, state: Optional[str], limit: int):
    """
    One row per station holding its most recent non-null `measurement`,
    ordered by that reading's timestamp, newest first.
    """
    rank = func.row_number().over(
        partition_by=Reading.station_id,
        order_by=Reading.recorded_at.desc()
    ).label("recency")

    per_station = (
        select(
            Reading.station_id,
            Station.name,
            Station.state,
            Station.district,
            Reading.recorded_at,
            measurement,
            Reading.source,
            rank,
        )
        .join(Station, Station.station_id == Reading.station_id)
        .where(measurement.isnot(None))
    )
    if state:
        per_station = per_station.where(Station.state == canonical_region(state))

    ranked = per_station.subquery()
    columns = [c for c in ranked.c if c.name != "recency"]
    return (
        select(*columns)
        .where(ranked.c.recency == 1)
        .order_by(ranked.c.recorded_at.desc())
        .limit(limit)
    )


@router.get("/readings/latest/rain", response_model=LatestRainResponse)
async def latest_rain(
    state: Optional[str] = Query(None, description="Filter by region code"),
    limit: int = Query(500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(latest_readings_query(Reading.rain_mm, state, limit))
    return LatestRainResponse(items=[LatestRainReading(**dict(row)) for row in result.mappings().all()])


@router.get("/readings/latest/water_level", response_model=LatestWaterLevelResponse)
async def latest_water_level(
    state: Optional[str] = Query(None, description="Filter by region code"),
    limit: int = Query(500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(latest_readings_query(Reading.river_level_m, state, limit))
    return LatestWaterLevelResponse(
        items=[LatestWaterLevelReading(**dict(row)) for row in result.mappings().all()]
    )


@router.post("/ingest/readings", response_model=ReadingsIngestResponse, status_code=status.HTTP_202_ACCEPTED)
async def ingest_readings(
    request: Request,
    payload: ReadingsIngestRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Upsert externally supplied readings.

    Every item needs station_id, recorded_at and source; the batch is merged
    by (station_id, recorded_at) and written with the same conflict rules as
    scheduled ingestion.
    """
    request_id = getattr(request.state, "request_id", "-")

    if not payload.items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="items required")

    readings = []
    for index, item in enumerate(payload.items):
        try:
            readings.append(ReadingUpsert(**item))
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"item {index}: station_id, recorded_at and source are required ({e.error_count()} errors)"
            )

    loader = PostgresLoader(db, batch_size=settings.INGEST_BATCH_SIZE)
    try:
        processed = await loader.upsert_readings(readings)
    except UpsertError as e:
        logger.error(
            f"[{request_id}] Direct readings ingest failed: {e.message}",
            extra={"error_context": e.to_dict()}
        )
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="upsert failed")

    logger.info(f"[{request_id}] Ingested {processed} readings from {len(readings)} items")
    return ReadingsIngestResponse(ok=True, processed=processed)
