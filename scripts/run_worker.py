"""
Run the staggered scheduler and the ingestion worker without the HTTP API
"""

import asyncio
import signal
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine
from core.logging import setup_logging
from ingestion.queue import IngestionQueue
from ingestion.runner import ingest_region
from ingestion.scheduler import IngestionScheduler

setup_logging()
logger = logging.getLogger(__name__)


async def run_worker():
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

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    queue.start()
    scheduler.start()
    logger.info(f"Worker running for {len(scheduler.regions)} regions")

    try:
        await stop_event.wait()
    finally:
        scheduler.stop()
        await queue.stop()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(run_worker())
