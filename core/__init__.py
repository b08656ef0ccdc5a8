"""
Core utilities and configuration for the flood ingestion service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration
    reference: Immutable reference data (region codes, alias table, sentinels)

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import PrimarySourceError, FallbackSourceError
    from core.logging import setup_logging
    from core.reference import DEFAULT_REFERENCE

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    "ReferenceData",
    "DEFAULT_REFERENCE",
    # Exceptions
    "IngestionException",
    "ExtractionError",
    "PrimarySourceError",
    "TableNotFoundError",
    "FallbackSourceError",
    "TransformationError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "TaskError",
    "InvalidTaskError",
    "RetryableError",
    "NonRetryableError",
]
