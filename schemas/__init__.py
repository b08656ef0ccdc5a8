"""
Pydantic schemas for validation and serialization.

Schemas:
    records: Typed rows, upsert payloads and per-region results of the pipeline
    tasks: In-memory ingestion task records
    api: API request/response models

Usage:
    from schemas.records import ReadingUpsert, SourceFetchResult
    from schemas.tasks import IngestionTask, TaskStatus
    from schemas.api import HealthCheckResponse
"""

__all__ = [
    "RainTableRow",
    "WaterTableRow",
    "FallbackRainRow",
    "FallbackWaterRow",
    "SkippedRow",
    "SourceFetchResult",
    "StationUpsert",
    "ReadingUpsert",
    "ReconciledBatch",
    "IngestionResult",
    "IngestionTask",
    "HealthCheckResponse",
]
