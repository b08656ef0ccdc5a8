"""
Typed records passed between the source adapter, normalizer, reconciler and loader
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Union
from datetime import datetime
from models.base import StationType, SourceMode


# ============================================================================
# Rows produced by the source adapter
# ============================================================================

class DailyTotal(BaseModel):
    """One labelled daily rainfall column"""
    date_raw: str
    total_mm: Optional[float] = None


class RainTableRow(BaseModel):
    """A rainfall table row from the primary HTML source"""
    station_id: str = Field(..., min_length=1)
    station_name: str = Field(..., min_length=1)
    district: Optional[str] = None
    recorded_at: Optional[datetime] = None
    rain_since_midnight_mm: Optional[float] = None
    rain_1h_mm: Optional[float] = None
    daily_totals: List[DailyTotal] = Field(default_factory=list)
    source: str


class WaterTableRow(BaseModel):
    """A water level table row from the primary HTML source"""
    station_id: str = Field(..., min_length=1)
    station_name: str = Field(..., min_length=1)
    district: Optional[str] = None
    main_basin: Optional[str] = None
    sub_river_basin: Optional[str] = None
    recorded_at: Optional[datetime] = None
    water_level_m: Optional[float] = None
    normal_threshold_m: Optional[float] = None
    alert_threshold_m: Optional[float] = None
    warning_threshold_m: Optional[float] = None
    danger_threshold_m: Optional[float] = None
    source: str


class FallbackRainRow(BaseModel):
    """A rainfall reading taken from the JSON feed (no reliable station id)"""
    station_name: str = Field(..., min_length=1)
    state: str
    district: Optional[str] = None
    recorded_at: datetime
    rain_mm: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: str


class FallbackWaterRow(BaseModel):
    """A water level reading taken from the JSON feed (no reliable station id)"""
    station_name: str = Field(..., min_length=1)
    state: str
    district: Optional[str] = None
    recorded_at: datetime
    water_level_m: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: str


class SkippedRow(BaseModel):
    """A row rejected at the normalizer boundary"""
    kind: str
    reason: str
    raw: List[str] = Field(default_factory=list)


RainRow = Union[RainTableRow, FallbackRainRow]
WaterRow = Union[WaterTableRow, FallbackWaterRow]


class SourceFetchResult(BaseModel):
    """Rows retrieved for one region by either source path"""
    region: str
    mode: SourceMode
    rain_rows: List[RainRow] = Field(default_factory=list)
    water_rows: List[WaterRow] = Field(default_factory=list)
    skipped_rows: List[SkippedRow] = Field(default_factory=list)


# ============================================================================
# Upsert payloads
# ============================================================================

class StationUpsert(BaseModel):
    """Station metadata to write"""
    station_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    state: Optional[str] = None
    district: Optional[str] = None
    station_type: StationType
    source: str

    class Config:
        use_enum_values = True


class ReadingUpsert(BaseModel):
    """One reading keyed by (station_id, recorded_at)"""
    station_id: str = Field(..., min_length=1)
    recorded_at: datetime
    rain_mm: Optional[float] = None
    river_level_m: Optional[float] = None
    source: str = Field(..., min_length=1)

    @validator("station_id", "source")
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @property
    def key(self):
        return (self.station_id, self.recorded_at)


class ReconciledBatch(BaseModel):
    """Output of the reconciler for one task"""
    region: str
    mode: SourceMode
    rain_rows: int = 0
    water_rows: int = 0
    skipped_rows: int = 0
    stations: List[StationUpsert] = Field(default_factory=list)
    prepared_readings: int = 0
    readings: List[ReadingUpsert] = Field(default_factory=list)


class IngestionResult(BaseModel):
    """Counts reported back to the worker for one region"""
    region: str
    mode: SourceMode
    rain_rows: int = 0
    water_level_rows: int = 0
    skipped_rows: int = 0
    upserted_stations: int = 0
    prepared_readings: int = 0
    merged_readings: int = 0
    affected_readings: int = 0

    class Config:
        use_enum_values = True
