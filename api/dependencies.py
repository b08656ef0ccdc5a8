"""
FastAPI dependencies
"""

from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from ingestion.queue import IngestionQueue
from ingestion.scheduler import IngestionScheduler


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session


def get_queue(request: Request) -> IngestionQueue:
    return request.app.state.queue


def get_scheduler(request: Request) -> IngestionScheduler:
    return request.app.state.scheduler
