import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from ingestion.queue import IngestionQueue
from schemas.tasks import IngestionTask, TaskOrigin

logger = logging.getLogger(__name__)


def stagger_delays(regions: Sequence[str], offset_seconds: float) -> List[float]:
    """Start delay per region: 0, O, 2O, ... so regions never fire together."""
    return [i * offset_seconds for i in range(len(regions))]


class IngestionScheduler:
    """
    Periodic, staggered producer of region ingestion tasks.

    One interval job per region; region i first fires i * offset seconds after
    registration and then every period. Job ids are stable so registering
    again replaces the existing jobs instead of duplicating them.
    """

    def __init__(
        self,
        queue: IngestionQueue,
        regions: Optional[Sequence[str]] = None,
        period_seconds: float = settings.SCHEDULE_PERIOD_SECONDS,
        offset_seconds: float = settings.SCHEDULE_OFFSET_SECONDS,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        self.queue = queue
        self.regions = list(regions if regions is not None else settings.INGEST_REGIONS)
        self.period_seconds = period_seconds
        self.offset_seconds = offset_seconds
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def job_id(self, region: str) -> str:
        return f"repeat.ingest.{region}:{int(self.period_seconds * 1000)}"

    async def run_scheduled(self, region: str) -> None:
        """Job: enqueue a scheduled task for one region"""
        self.queue.enqueue(region, origin=TaskOrigin.SCHEDULED)

    def register_regions(self) -> List[str]:
        now = datetime.now(timezone.utc)
        job_ids = []

        for region, delay in zip(self.regions, stagger_delays(self.regions, self.offset_seconds)):
            job_id = self.job_id(region)
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)

            self.scheduler.add_job(
                self.run_scheduled,
                trigger=IntervalTrigger(
                    seconds=self.period_seconds,
                    start_date=now + timedelta(seconds=delay),
                ),
                args=[region],
                id=job_id,
                name=f"ingest {region}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            job_ids.append(job_id)

        logger.info(
            f"Registered {len(job_ids)} region jobs "
            f"(every {self.period_seconds}s, offset {self.offset_seconds}s)"
        )
        return job_ids

    def trigger(self, region: str) -> IngestionTask:
        """On-demand ingestion with the same retry policy as scheduled tasks"""
        return self.queue.enqueue(region, origin=TaskOrigin.MANUAL)

    def jobs(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": job.id,
                "next_run_time": getattr(job, "next_run_time", None),
            }
            for job in self.scheduler.get_jobs()
        ]

    def start(self):
        """Register region jobs and start the scheduler"""
        self.register_regions()
        self.scheduler.start()
        logger.info("Ingestion scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Ingestion scheduler stopped")
