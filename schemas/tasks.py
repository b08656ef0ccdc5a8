"""
In-memory ingestion task records kept by the queue
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import enum
import uuid


class TaskStatus(str, enum.Enum):
    """Lifecycle of a queued region ingestion"""
    DELAYED = "delayed"
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskOrigin(str, enum.Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionTask(BaseModel):
    """One region ingestion with its retry policy and outcome"""
    task_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    region: str = Field(..., min_length=1)
    origin: TaskOrigin = TaskOrigin.MANUAL
    status: TaskStatus = TaskStatus.WAITING

    attempt: int = 0
    max_attempts: int = Field(3, ge=1)
    backoff_seconds: float = Field(5.0, ge=0)

    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    error: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None

    @property
    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def next_delay(self) -> float:
        """Exponential backoff before the next attempt: backoff * 2^(attempt-1)."""
        return self.backoff_seconds * (2 ** max(0, self.attempt - 1))
