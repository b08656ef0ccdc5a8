"""
Station registry endpoint with pagination and filtering
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, true
from api.dependencies import get_db
from schemas.api import StationListResponse, StationResponse, PaginationMetadata
from models.station import Station
from ingestion.transformers.normalizer import canonical_region
from typing import Optional
import time
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Stations"])


@router.get("/stations", response_model=StationListResponse)
async def list_stations(
    request: Request,
    state: Optional[str] = Query(None, description="Filter by region code"),
    district: Optional[str] = Query(None, description="Filter by district"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(100, ge=1, le=1000, description="Stations per page"),
    db: AsyncSession = Depends(get_db)
):
    """
    Active stations ordered by state, district, name.
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", "-")

    filters = [Station.is_active == true()]
    if state:
        filters.append(Station.state == canonical_region(state))
    if district:
        filters.append(Station.district == district)

    count_result = await db.execute(
        select(func.count()).select_from(Station).where(and_(*filters))
    )
    total_items = count_result.scalar() or 0
    total_pages = math.ceil(total_items / limit) if total_items > 0 else 0

    query = (
        select(Station)
        .where(and_(*filters))
        .order_by(Station.state, Station.district, Station.name)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(query)
    items = [StationResponse.model_validate(s) for s in result.scalars().all()]

    logger.info(
        f"[{request_id}] GET /stations returned {len(items)} of {total_items} "
        f"({(time.time() - start_time) * 1000:.2f}ms)"
    )

    return StationListResponse(
        items=items,
        pagination=PaginationMetadata(
            total_items=total_items,
            total_pages=total_pages,
            current_page=page,
            page_size=limit,
            has_next=page < total_pages,
            has_previous=page > 1
        ),
        filters_applied={k: v for k, v in {"state": state, "district": district}.items() if v is not None}
    )
