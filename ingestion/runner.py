# ============================================================================
# File: ingestion/runner.py
# Description: Per-region ingestion orchestrator
# ============================================================================
"""
Ingestion Runner - chains Source Adapter -> Reconciler -> Storage Gateway for one region.

This module provides:
- Primary/fallback retrieval through the source adapter
- Station lookup for fallback name matching
- Station upserts before reading upserts (readings reference stations)
- Structured error context on every failure, re-raised for the task queue to retry
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.config import settings
from core.database import async_session_maker
from core.exceptions import (
    ExtractionError,
    IngestionException,
    LoadError,
    TransformationError,
)
from ingestion.extractors.pib_extractor import PIBSourceAdapter
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.transformers.reconciler import Reconciler
from models.base import SourceMode
from models.station import Station
from schemas.records import IngestionResult

logger = logging.getLogger(__name__)


class IngestionRunner:
    """
    Region ingestion orchestrator

    Responsibilities:
    - Retrieve rows (primary, else fallback)
    - Reconcile into deduplicated station and reading upserts
    - Persist stations, then readings
    - Report counts back to the worker
    """

    def __init__(
        self,
        db_session: AsyncSession,
        adapter: PIBSourceAdapter,
        reconciler: Optional[Reconciler] = None,
        batch_size: int = settings.INGEST_BATCH_SIZE
    ):
        self.db = db_session
        self.adapter = adapter
        self.reconciler = reconciler or Reconciler()
        self.loader = PostgresLoader(db_session, batch_size=batch_size)

    async def run(self, region: str) -> IngestionResult:
        """
        Ingest one region.

        Returns:
            IngestionResult with scraped, prepared, merged and affected counts

        Raises:
            ExtractionError: If neither source produced rows
            TransformationError: If reconciliation fails unexpectedly
            LoadError: If a database statement fails
        """
        try:
            # --------------------------------------------------
            # PHASE 1: RETRIEVAL
            # --------------------------------------------------
            logger.info(f"Starting ingestion for {region}")

            try:
                fetch = await self.adapter.fetch_region(region)
            except ExtractionError:
                raise
            except Exception as e:
                raise ExtractionError(
                    "Unexpected error during retrieval",
                    context={"region": region},
                    original_exception=e
                )

            # --------------------------------------------------
            # PHASE 2: RECONCILIATION
            # --------------------------------------------------
            stations: List[Station] = []
            if fetch.mode == SourceMode.FALLBACK:
                stations = await self.loader.list_active_stations(region)
                logger.info(f"Matching fallback rows against {len(stations)} active stations")

            try:
                batch = self.reconciler.reconcile(fetch, region, stations)
            except Exception as e:
                raise TransformationError(
                    "Failed to reconcile rows",
                    context={
                        "region": region,
                        "mode": fetch.mode,
                        "rain_rows": len(fetch.rain_rows),
                        "water_rows": len(fetch.water_rows)
                    },
                    original_exception=e
                )

            # --------------------------------------------------
            # PHASE 3: LOAD (IDEMPOTENT UPSERT)
            # --------------------------------------------------
            upserted_stations = await self.loader.upsert_stations(batch.stations)
            affected = await self.loader.upsert_readings(batch.readings)

            result = IngestionResult(
                region=region,
                mode=batch.mode,
                rain_rows=batch.rain_rows,
                water_level_rows=batch.water_rows,
                skipped_rows=batch.skipped_rows,
                upserted_stations=upserted_stations,
                prepared_readings=batch.prepared_readings,
                merged_readings=len(batch.readings),
                affected_readings=affected,
            )

            logger.info(
                f"Ingestion completed for {region} ({result.mode}): "
                f"rain={result.rain_rows}, water_level={result.water_level_rows}, "
                f"skipped={result.skipped_rows}, stations={result.upserted_stations}, "
                f"prepared={result.prepared_readings}, merged={result.merged_readings}, "
                f"affected={result.affected_readings}"
            )
            return result

        except (ExtractionError, TransformationError, LoadError) as e:
            logger.error(
                f"Ingestion failed for {region}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        except IngestionException:
            raise

        except Exception as e:
            logger.exception(f"Unexpected error ingesting {region}")
            raise IngestionException(
                "Unexpected error in ingestion pipeline",
                context={"region": region},
                original_exception=e
            )


async def ingest_region(region: str) -> IngestionResult:
    """Queue handler: ingest one region in its own database session"""
    adapter = PIBSourceAdapter.from_settings(settings)
    async with async_session_maker() as session:
        runner = IngestionRunner(session, adapter)
        return await runner.run(region)
