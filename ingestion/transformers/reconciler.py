"""
Reconcile one task's rows into station and reading upserts.

Merge rules:
- Stations are deduplicated by station_id; the first observed row wins, so a
  station reported on both pages in one batch keeps its rainfall role.
- Readings are collapsed by (station_id, recorded_at) before writing because a
  single INSERT ... ON CONFLICT statement must not touch the same key twice.
  Per measurement the first non-null value wins; source is taken from the
  later record.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.reference import ReferenceData, DEFAULT_REFERENCE
from ingestion.transformers.normalizer import canonical_region
from models.base import SourceMode, StationType
from schemas.records import (
    FallbackRainRow,
    FallbackWaterRow,
    RainTableRow,
    ReadingUpsert,
    ReconciledBatch,
    SourceFetchResult,
    StationUpsert,
    WaterTableRow,
)
import logging

logger = logging.getLogger(__name__)


def match_key(value: Optional[str]) -> str:
    """Lower-case, underscore-free, whitespace-collapsed text used for name matching."""
    return re.sub(r"\s+", " ", (value or "").lower().replace("_", " ")).strip()


def merge_readings(items: Iterable[ReadingUpsert]) -> List[ReadingUpsert]:
    """
    Collapse readings sharing (station_id, recorded_at), preserving first-seen order.

    Idempotent: merging an already merged list returns an equal list.
    """
    merged: Dict[Tuple[str, Any], ReadingUpsert] = {}

    for item in items:
        existing = merged.get(item.key)
        if existing is None:
            merged[item.key] = item
            continue

        merged[item.key] = ReadingUpsert(
            station_id=existing.station_id,
            recorded_at=existing.recorded_at,
            rain_mm=existing.rain_mm if existing.rain_mm is not None else item.rain_mm,
            river_level_m=(
                existing.river_level_m if existing.river_level_m is not None else item.river_level_m
            ),
            source=item.source or existing.source,
        )

    return list(merged.values())


class StationIndex:
    """Lookup of existing stations by (name, region, district) and (name, region)."""

    def __init__(self, stations: Iterable[Any], aliases=DEFAULT_REFERENCE.region_aliases):
        self.aliases = aliases
        self._by_name_region_district: Dict[Tuple[str, str, str], str] = {}
        self._by_name_region: Dict[Tuple[str, str], str] = {}

        for station in stations:
            station_id = _attr(station, "station_id")
            if not station_id:
                continue
            name = match_key(_attr(station, "name"))
            region = match_key(canonical_region(_attr(station, "state"), aliases))
            district = match_key(_attr(station, "district"))
            self._by_name_region_district[(name, region, district)] = station_id
            self._by_name_region[(name, region)] = station_id

    def __len__(self) -> int:
        return len(self._by_name_region)

    def find(self, name: str, region: str, district: Optional[str] = None) -> Optional[str]:
        n = match_key(name)
        r = match_key(canonical_region(region, self.aliases))
        d = match_key(district)
        return self._by_name_region_district.get((n, r, d)) or self._by_name_region.get((n, r))


def _attr(obj: Any, name: str) -> Optional[str]:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class Reconciler:
    """
    Turn a SourceFetchResult into a ReconciledBatch.

    Holds no state between tasks.
    """

    def __init__(self, reference: ReferenceData = DEFAULT_REFERENCE):
        self.reference = reference

    def build_station_upserts(self, fetch: SourceFetchResult, region: str) -> List[StationUpsert]:
        candidates: List[StationUpsert] = []

        for row in fetch.rain_rows:
            if isinstance(row, RainTableRow):
                candidates.append(StationUpsert(
                    station_id=row.station_id,
                    name=row.station_name,
                    district=row.district,
                    state=region,
                    station_type=StationType.RAINFALL,
                    source=row.source,
                ))

        for row in fetch.water_rows:
            if isinstance(row, WaterTableRow):
                candidates.append(StationUpsert(
                    station_id=row.station_id,
                    name=row.station_name,
                    district=row.district,
                    state=region,
                    station_type=StationType.WATER_LEVEL,
                    source=row.source,
                ))

        deduped: Dict[str, StationUpsert] = {}
        for candidate in candidates:
            if candidate.station_id not in deduped:
                deduped[candidate.station_id] = candidate
        return list(deduped.values())

    def build_primary_readings(self, fetch: SourceFetchResult) -> List[ReadingUpsert]:
        items: List[ReadingUpsert] = []

        for row in fetch.rain_rows:
            if not isinstance(row, RainTableRow):
                continue
            if row.rain_1h_mm is None or row.recorded_at is None:
                continue
            items.append(ReadingUpsert(
                station_id=row.station_id,
                recorded_at=row.recorded_at,
                rain_mm=row.rain_1h_mm,
                river_level_m=None,
                source=row.source,
            ))

        for row in fetch.water_rows:
            if not isinstance(row, WaterTableRow):
                continue
            if row.water_level_m is None or row.recorded_at is None:
                continue
            items.append(ReadingUpsert(
                station_id=row.station_id,
                recorded_at=row.recorded_at,
                rain_mm=None,
                river_level_m=row.water_level_m,
                source=row.source,
            ))

        return items

    def resolve_fallback_readings(
        self,
        fetch: SourceFetchResult,
        stations: Iterable[Any],
    ) -> List[ReadingUpsert]:
        index = stations if isinstance(stations, StationIndex) else StationIndex(
            stations, self.reference.region_aliases
        )
        items: List[ReadingUpsert] = []
        unmatched = 0

        for row in fetch.rain_rows:
            if not isinstance(row, FallbackRainRow):
                continue
            station_id = index.find(row.station_name, row.state, row.district)
            if not station_id:
                unmatched += 1
                continue
            items.append(ReadingUpsert(
                station_id=station_id,
                recorded_at=row.recorded_at,
                rain_mm=row.rain_mm,
                river_level_m=None,
                source=row.source,
            ))

        for row in fetch.water_rows:
            if not isinstance(row, FallbackWaterRow):
                continue
            station_id = index.find(row.station_name, row.state, row.district)
            if not station_id:
                unmatched += 1
                continue
            items.append(ReadingUpsert(
                station_id=station_id,
                recorded_at=row.recorded_at,
                rain_mm=None,
                river_level_m=row.water_level_m,
                source=row.source,
            ))

        if unmatched:
            logger.info(
                f"Fallback rows for {fetch.region} without a matching station: {unmatched} "
                f"(index size {len(index)})"
            )
        return items

    def reconcile(
        self,
        fetch: SourceFetchResult,
        region: str,
        stations: Optional[Sequence[Any]] = None,
    ) -> ReconciledBatch:
        if fetch.mode == SourceMode.PRIMARY:
            station_upserts = self.build_station_upserts(fetch, region)
            candidates = self.build_primary_readings(fetch)
        else:
            station_upserts = []
            candidates = self.resolve_fallback_readings(fetch, stations or [])

        readings = merge_readings(candidates)

        logger.debug(
            f"Reconciled {region}: stations={len(station_upserts)}, "
            f"candidates={len(candidates)}, merged={len(readings)}"
        )

        return ReconciledBatch(
            region=region,
            mode=fetch.mode,
            rain_rows=len(fetch.rain_rows),
            water_rows=len(fetch.water_rows),
            skipped_rows=len(fetch.skipped_rows),
            stations=station_upserts,
            prepared_readings=len(candidates),
            readings=readings,
        )
