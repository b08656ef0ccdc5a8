"""
Ingestion job endpoints: on-demand trigger, task inspection and inline ingest
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import Optional
from api.dependencies import get_queue, get_scheduler
from core.exceptions import IngestionException, InvalidTaskError
from ingestion.queue import IngestionQueue
from ingestion.runner import ingest_region
from ingestion.scheduler import IngestionScheduler
from ingestion.transformers.normalizer import canonical_region
from schemas.api import IngestJobAccepted, IngestJobRequest, TaskListResponse
from schemas.records import IngestionResult
from schemas.tasks import IngestionTask, TaskStatus
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Jobs"])


@router.post("/jobs/ingest", response_model=IngestJobAccepted, status_code=status.HTTP_202_ACCEPTED)
async def trigger_ingestion(
    request: Request,
    payload: IngestJobRequest,
    scheduler: IngestionScheduler = Depends(get_scheduler)
):
    """
    Enqueue an ingestion task for one region.

    The task uses the same attempts/backoff policy as scheduled tasks.
    """
    request_id = getattr(request.state, "request_id", "-")

    try:
        task = scheduler.trigger(payload.region or "")
    except InvalidTaskError as e:
        logger.info(f"[{request_id}] Rejected ingestion trigger: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="region required")

    logger.info(f"[{request_id}] Queued ingestion for {task.region} as {task.task_id}")
    return IngestJobAccepted(queued=True, task_id=task.task_id, region=task.region)


@router.get("/jobs", response_model=TaskListResponse)
async def list_jobs(
    status_filter: Optional[TaskStatus] = Query(None, alias="status", description="Filter by task status"),
    limit: int = Query(50, ge=1, le=500, description="Maximum tasks returned"),
    queue: IngestionQueue = Depends(get_queue)
):
    """Live tasks plus the bounded completed/failed history, newest first"""
    return TaskListResponse(
        items=queue.list_tasks(status=status_filter, limit=limit),
        counts=queue.counts(),
    )


@router.get("/jobs/{task_id}", response_model=IngestionTask)
async def get_job(task_id: str, queue: IngestionQueue = Depends(get_queue)):
    task = queue.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="task not found")
    return task


@router.post("/pib/ingest", response_model=IngestionResult)
async def ingest_now(
    request: Request,
    state: Optional[str] = Query(None, description="Region code or state name")
):
    """
    Run one region's ingestion inline and return its counts.

    Bypasses the queue, so there is no retry beyond the adapter's own.
    """
    request_id = getattr(request.state, "request_id", "-")
    region = canonical_region(state)
    if not region:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="state required")

    try:
        result = await ingest_region(region)
    except IngestionException as e:
        logger.error(
            f"[{request_id}] Inline ingestion failed for {region}: {e.message}",
            extra={"error_context": e.to_dict()}
        )
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    logger.info(f"[{request_id}] Inline ingestion for {region}: {result.dict()}")
    return result
