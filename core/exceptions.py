"""
Custom exceptions for the flood ingestion pipeline with structured error context.

Every exception carries a context dictionary so that task-level failures can be
logged and kept in the queue history with enough detail to debug a region.

Exception Hierarchy:
    IngestionException (base)
    ├── ExtractionError
    │   ├── PrimarySourceError (retryable)
    │   │   └── TableNotFoundError
    │   └── FallbackSourceError
    ├── TransformationError
    ├── LoadError
    │   ├── DatabaseError
    │   └── UpsertError
    ├── TaskError
    │   └── InvalidTaskError (non-retryable)
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionException(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (region, url, table, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(IngestionException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Page navigation timeouts
    - Selector waits that never resolve
    - Network failures against the portal
    """
    pass


class NonRetryableError(IngestionException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like an empty region code on enqueue.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(IngestionException):
    """Base exception for data extraction failures."""
    pass


class PrimarySourceError(RetryableError, ExtractionError):
    """
    Raised when one attempt at the rendered portal pages fails.

    Context should include:
        - region: Region code being scraped
        - url: Page URL (single page loads)
        - attempts: Attempts made (after retries are exhausted)
    """
    pass


class TableNotFoundError(PrimarySourceError):
    """
    Raised when the loaded page has no data table with the expected id.

    Context should include:
        - table_id: The id that was searched for
    """
    pass


class FallbackSourceError(ExtractionError):
    """
    Raised when the JSON fallback feed cannot be used.

    Context should include:
        - url: Feed URL
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(IngestionException):
    """Base exception for data transformation failures."""
    pass



# ============================================================================
# Load Errors
# ============================================================================

class LoadError(IngestionException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (SELECT, UPSERT)
        - table_name: Name of the table
    """
    pass


class UpsertError(LoadError):
    """
    Exception raised when an upsert statement fails.

    Context should include:
        - table_name: Target table
        - records_to_load: Number of rows in the batch
    """
    pass


# ============================================================================
# Task Errors
# ============================================================================

class TaskError(IngestionException):
    """Base exception for task queue failures."""
    pass


class InvalidTaskError(NonRetryableError, TaskError):
    """Raised when a task cannot be enqueued (e.g. empty region code)."""
    pass
