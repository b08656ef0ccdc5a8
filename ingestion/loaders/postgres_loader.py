"""
Persist stations and readings into PostgreSQL with upsert logic (idempotency)
"""

from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, true
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from models.station import Station
from models.reading import Reading
from schemas.records import ReadingUpsert, StationUpsert
from ingestion.transformers.reconciler import merge_readings
from core.exceptions import DatabaseError, UpsertError
import logging

logger = logging.getLogger(__name__)


class PostgresLoader:
    """
    Write reconciled batches with idempotent upsert operations.

    Ensures:
    - No duplicate rows on repeated runs
    - Station state/district and reading measurements never regress to NULL
    - One statement per chunk, rolled back on failure
    """

    def __init__(self, db_session: AsyncSession, batch_size: int = 500):
        self.db = db_session
        self.batch_size = max(1, batch_size)

    def _chunks(self, items: Sequence) -> List[Sequence]:
        return [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def station_statement(self, batch: Sequence[StationUpsert]):
        """
        INSERT ... ON CONFLICT (station_id) DO UPDATE

        name, station_type and source are overwritten; state and district keep
        the stored value when the incoming one is NULL.
        """
        rows = [
            {
                "station_id": item.station_id,
                "name": item.name,
                "state": item.state,
                "district": item.district,
                "station_type": item.station_type,
                "source": item.source,
                "is_active": True,
            }
            for item in batch
        ]

        stmt = insert(Station).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=["station_id"],
            set_={
                "name": stmt.excluded.name,
                "state": func.coalesce(stmt.excluded.state, Station.state),
                "district": func.coalesce(stmt.excluded.district, Station.district),
                "station_type": stmt.excluded.station_type,
                "source": stmt.excluded.source,
                "is_active": True,
                "updated_at": func.now(),
            }
        )

    def reading_statement(self, batch: Sequence[ReadingUpsert]):
        """
        INSERT ... ON CONFLICT (station_id, recorded_at) DO UPDATE

        Measurements are COALESCEd with the stored row; source is overwritten.
        """
        rows = [
            {
                "station_id": item.station_id,
                "recorded_at": item.recorded_at,
                "rain_mm": item.rain_mm,
                "river_level_m": item.river_level_m,
                "source": item.source,
            }
            for item in batch
        ]

        stmt = insert(Reading).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=["station_id", "recorded_at"],
            set_={
                "rain_mm": func.coalesce(stmt.excluded.rain_mm, Reading.rain_mm),
                "river_level_m": func.coalesce(stmt.excluded.river_level_m, Reading.river_level_m),
                "source": stmt.excluded.source,
            }
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_stations(self, items: Sequence[StationUpsert]) -> int:
        """
        Upsert station metadata; every written station is marked active.

        Returns:
            Number of stations in the batch (0 for an empty batch, no statement issued)
        """
        if not items:
            return 0

        # A multi-row ON CONFLICT statement must not hit the same key twice
        unique = list({item.station_id: item for item in reversed(list(items))}.values())[::-1]

        try:
            for chunk in self._chunks(unique):
                await self.db.execute(self.station_statement(chunk))
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                "Failed to upsert stations",
                context={
                    "operation": "UPSERT",
                    "table_name": "stations",
                    "records_to_load": len(unique)
                },
                original_exception=e
            )

        logger.info(f"Upserted {len(unique)} stations")
        return len(unique)

    async def upsert_readings(self, items: Sequence[ReadingUpsert]) -> int:
        """
        Upsert readings keyed by (station_id, recorded_at).

        The batch is merged again before writing so callers may pass
        unmerged input.

        Returns:
            Affected row count reported by the driver, else the merged batch size
        """
        if not items:
            return 0

        merged = merge_readings(items)
        affected = 0

        try:
            for chunk in self._chunks(merged):
                result = await self.db.execute(self.reading_statement(chunk))
                rowcount = getattr(result, "rowcount", None)
                affected += rowcount if isinstance(rowcount, int) and rowcount >= 0 else len(chunk)
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                "Failed to upsert readings",
                context={
                    "operation": "UPSERT",
                    "table_name": "readings",
                    "records_to_load": len(merged)
                },
                original_exception=e
            )

        logger.info(f"Upserted {len(merged)} readings ({affected} rows affected)")
        return affected

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_active_stations(self, region: Optional[str] = None) -> List[Station]:
        """Active stations, optionally limited to one region, for fallback matching."""
        query = select(Station).where(Station.is_active == true())
        if region:
            query = query.where(Station.state == region)

        try:
            result = await self.db.execute(query)
            return list(result.scalars().all())

        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to list active stations",
                context={"operation": "SELECT", "table_name": "stations", "region": region},
                original_exception=e
            )
