"""
Health check endpoint with database, scheduler and queue status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_queue, get_scheduler
from ingestion.queue import IngestionQueue
from ingestion.scheduler import IngestionScheduler
from schemas.api import HealthCheckResponse
from core.config import settings
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    queue: IngestionQueue = Depends(get_queue),
    scheduler: IngestionScheduler = Depends(get_scheduler)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Scheduler / worker state
    - Queue depth per task status
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    scheduler_running = scheduler.running
    worker_running = queue.running

    if not db_connected:
        status = "unhealthy"
    elif (settings.SCHEDULER_ENABLED and not scheduler_running) or (
        settings.WORKER_ENABLED and not worker_running
    ):
        status = "degraded"
    else:
        status = "healthy"

    return HealthCheckResponse(
        status=status,
        database_connected=db_connected,
        scheduler_running=scheduler_running,
        worker_running=worker_running,
        scheduled_jobs=len(scheduler.jobs()),
        queue=queue.counts(),
    )
