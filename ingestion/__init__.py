"""
Flood telemetry ingestion pipeline.

Modules:
    runner: Per-region orchestrator (retrieve -> reconcile -> upsert)
    queue: In-process task queue with retry/backoff and bounded history
    scheduler: APScheduler integration producing staggered periodic tasks

Subpackages:
    extractors: PublicInfoBanjir page scraping and JSON fallback feed
    transformers: Row normalization and reconciliation
    loaders: PostgreSQL upserts with field-level conflict rules

Usage:
    from ingestion.runner import IngestionRunner
    from ingestion.extractors.pib_extractor import PIBSourceAdapter

    runner = IngestionRunner(session, PIBSourceAdapter.from_settings())
    result = await runner.run("PNG")

Error Handling:
    Row defects become SkippedRow records and are counted. Source and storage
    failures raise exceptions from core.exceptions and are retried by the queue.
"""

__all__ = [
    "IngestionRunner",
    "IngestionQueue",
    "IngestionScheduler",
    "PIBSourceAdapter",
    "PostgresLoader",
]
