"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, jobs, stations, readings
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.queue import IngestionQueue
from ingestion.runner import ingest_region
from ingestion.scheduler import IngestionScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Flood Telemetry Ingestion API",
    description="PublicInfoBanjir rainfall and river level ingestion service",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Task queue + periodic producer
queue = IngestionQueue(
    ingest_region,
    concurrency=settings.WORKER_CONCURRENCY,
    max_attempts=settings.TASK_MAX_ATTEMPTS,
    backoff_seconds=settings.TASK_BACKOFF_SECONDS,
    history_limit=settings.TASK_HISTORY_LIMIT
)
scheduler = IngestionScheduler(
    queue,
    regions=settings.INGEST_REGIONS,
    period_seconds=settings.SCHEDULE_PERIOD_SECONDS,
    offset_seconds=settings.SCHEDULE_OFFSET_SECONDS
)
app.state.queue = queue
app.state.scheduler = scheduler


# Include routers
app.include_router(health.router)
app.include_router(jobs.router)
app.include_router(stations.router)
app.include_router(readings.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Flood Telemetry Ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.WORKER_ENABLED:
        app.state.queue.start()
    if settings.SCHEDULER_ENABLED:
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Flood Telemetry Ingestion API")
    app.state.scheduler.stop()
    await app.state.queue.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Flood Telemetry Ingestion API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "jobs": "/jobs",
            "ingest_region": "/pib/ingest",
            "stations": "/stations",
            "latest_rain": "/readings/latest/rain",
            "latest_water_level": "/readings/latest/water_level",
            "ingest_readings": "/ingest/readings"
        }
    }
