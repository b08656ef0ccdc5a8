"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from schemas.tasks import IngestionTask


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    scheduler_running: bool = False
    worker_running: bool = False
    scheduled_jobs: int = 0
    queue: Dict[str, int] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "scheduler_running": True,
                "worker_running": True,
                "scheduled_jobs": 16,
                "queue": {"delayed": 0, "waiting": 2, "active": 1, "completed": 50, "failed": 1}
            }
        }


# ============================================================================
# Job Schemas
# ============================================================================

class IngestJobRequest(BaseModel):
    """On-demand ingestion trigger"""
    region: Optional[str] = Field(None, description="Region code, e.g. PNG")


class IngestJobAccepted(BaseModel):
    queued: bool = True
    task_id: str
    region: str


class TaskListResponse(BaseModel):
    """Live and recently finished ingestion tasks"""
    items: List[IngestionTask]
    counts: Dict[str, int] = Field(default_factory=dict)


class ReadingsIngestRequest(BaseModel):
    """Direct readings ingest; items are validated one by one"""
    items: List[Dict[str, Any]] = Field(default_factory=list)


class ReadingsIngestResponse(BaseModel):
    ok: bool = True
    processed: int


# ============================================================================
# Station / Reading Schemas
# ============================================================================

class StationResponse(BaseModel):
    """Response model for a station"""
    station_id: str
    name: str
    state: Optional[str] = None
    district: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    station_type: str
    source: str
    is_active: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "station_id": "3613001",
                "name": "Sungai Ara",
                "state": "PNG",
                "district": "Barat Daya",
                "lat": None,
                "lon": None,
                "station_type": "rainfall",
                "source": "publicinfobanjir",
                "is_active": True
            }
        }


class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class StationListResponse(BaseModel):
    """Paginated station response"""
    items: List[StationResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class LatestRainReading(BaseModel):
    """Latest non-null rainfall per station"""
    station_id: str
    name: str
    state: Optional[str] = None
    district: Optional[str] = None
    recorded_at: datetime
    rain_mm: float
    source: str

    class Config:
        from_attributes = True


class LatestWaterLevelReading(BaseModel):
    """Latest non-null river level per station"""
    station_id: str
    name: str
    state: Optional[str] = None
    district: Optional[str] = None
    recorded_at: datetime
    river_level_m: float
    source: str

    class Config:
        from_attributes = True


class LatestRainResponse(BaseModel):
    items: List[LatestRainReading]


class LatestWaterLevelResponse(BaseModel):
    items: List[LatestWaterLevelReading]
