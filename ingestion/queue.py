"""
In-process ingestion task queue.

Tasks carry one region each. A fixed number of worker coroutines pull tasks
and run the ingestion handler; failed attempts are re-scheduled with
exponential backoff until the task's attempts are spent. Finished tasks are
kept in bounded completed/failed histories for inspection.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from core.exceptions import IngestionException, InvalidTaskError, NonRetryableError, TaskError
from ingestion.transformers.normalizer import canonical_region
from schemas.tasks import IngestionTask, TaskOrigin, TaskStatus
import logging

logger = logging.getLogger(__name__)

TaskHandler = Callable[[str], Awaitable[Any]]


def _error_context(e: Exception) -> Dict[str, Any]:
    if isinstance(e, IngestionException):
        return e.to_dict()
    return {"error_type": type(e).__name__, "message": str(e)}


def _result_dict(result: Any) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    if hasattr(result, "dict"):
        return result.dict()
    if isinstance(result, dict):
        return dict(result)
    return {"value": result}


class IngestionQueue:
    """
    Queue + worker pool for region ingestion tasks.

    Attributes:
        handler: Coroutine function run with the task's region
        concurrency: Number of worker coroutines (1 = strictly serial)
        max_attempts: Default attempts per task
        backoff_seconds: Default initial retry delay
        history_limit: Entries kept in each of the completed/failed histories
    """

    def __init__(
        self,
        handler: TaskHandler,
        concurrency: int = 1,
        max_attempts: int = 3,
        backoff_seconds: float = 5.0,
        history_limit: int = 50
    ):
        self.handler = handler
        self.concurrency = max(1, concurrency)
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.history_limit = history_limit

        self._pending: asyncio.Queue = asyncio.Queue()
        self._live: Dict[str, IngestionTask] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._done_events: Dict[str, asyncio.Event] = {}
        self._completed: Deque[IngestionTask] = deque(maxlen=history_limit)
        self._failed: Deque[IngestionTask] = deque(maxlen=history_limit)
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def enqueue(
        self,
        region: str,
        origin: TaskOrigin = TaskOrigin.MANUAL,
        delay: float = 0.0,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None
    ) -> IngestionTask:
        """
        Add a task for `region`.

        Raises:
            InvalidTaskError: If region is empty
        """
        region = canonical_region(region)
        if not region:
            raise InvalidTaskError("Task region is required", context={"origin": origin})

        task = IngestionTask(
            region=region,
            origin=origin,
            max_attempts=max_attempts or self.max_attempts,
            backoff_seconds=self.backoff_seconds if backoff_seconds is None else backoff_seconds,
        )
        self._live[task.task_id] = task
        self._done_events[task.task_id] = asyncio.Event()
        self._schedule(task, delay)

        logger.info(
            f"Enqueued {task.origin.value} task {task.task_id} for {region}"
            + (f" (delay {delay:.0f}s)" if delay > 0 else "")
        )
        return task

    def _schedule(self, task: IngestionTask, delay: float) -> None:
        if delay > 0:
            task.status = TaskStatus.DELAYED
            loop = asyncio.get_running_loop()
            self._timers[task.task_id] = loop.call_later(delay, self._release, task.task_id)
        else:
            task.status = TaskStatus.WAITING
            self._pending.put_nowait(task.task_id)

    def _release(self, task_id: str) -> None:
        self._timers.pop(task_id, None)
        task = self._live.get(task_id)
        if task is not None:
            task.status = TaskStatus.WAITING
            self._pending.put_nowait(task_id)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"ingestion-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Ingestion queue started with {self.concurrency} worker(s)")

    async def stop(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        for worker in self._workers:
            if not worker.done():
                worker.cancel()
                try:
                    await worker
                except asyncio.CancelledError:
                    pass

        self._workers = []
        logger.info("Ingestion queue stopped")

    async def _worker(self, index: int) -> None:
        while True:
            task_id = await self._pending.get()
            try:
                task = self._live.get(task_id)
                if task is not None:
                    await self._run(task)
            finally:
                self._pending.task_done()

    async def _run(self, task: IngestionTask) -> None:
        task.status = TaskStatus.ACTIVE
        task.attempt += 1
        task.started_at = datetime.now(timezone.utc)
        logger.info(f"Task {task.task_id} ({task.region}) attempt {task.attempt}/{task.max_attempts}")

        try:
            result = await self.handler(task.region)

        except asyncio.CancelledError:
            task.error = {"error_type": "CancelledError", "message": "Worker stopped during attempt"}
            logger.warning(f"Task {task.task_id} ({task.region}) interrupted by queue shutdown")
            self._finish(task, TaskStatus.FAILED, self._failed)
            raise

        except Exception as e:
            task.error = _error_context(e)
            retryable = not isinstance(e, NonRetryableError)

            if retryable and task.attempt < task.max_attempts:
                delay = task.next_delay()
                logger.warning(
                    f"Task {task.task_id} ({task.region}) failed, retrying in {delay:.1f}s: {e}"
                )
                self._schedule(task, delay)
                return

            logger.error(
                f"Task {task.task_id} ({task.region}) failed after {task.attempt} attempt(s)",
                extra={"error_context": task.error}
            )
            self._finish(task, TaskStatus.FAILED, self._failed)
            return

        task.result = _result_dict(result)
        task.error = None
        logger.info(f"Task {task.task_id} ({task.region}) completed: {task.result}")
        self._finish(task, TaskStatus.COMPLETED, self._completed)

    def _finish(self, task: IngestionTask, status: TaskStatus, history: Deque[IngestionTask]) -> None:
        task.status = status
        task.finished_at = datetime.now(timezone.utc)
        self._live.pop(task.task_id, None)
        history.append(task)

        event = self._done_events.pop(task.task_id, None)
        if event is not None:
            event.set()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[IngestionTask]:
        task = self._live.get(task_id)
        if task is not None:
            return task
        for history in (self._completed, self._failed):
            for finished in history:
                if finished.task_id == task_id:
                    return finished
        return None

    def list_tasks(self, status: Optional[TaskStatus] = None, limit: Optional[int] = None) -> List[IngestionTask]:
        """Live and recently finished tasks, newest first."""
        tasks = list(self._live.values()) + list(self._completed) + list(self._failed)
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks[:limit] if limit else tasks

    def counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in TaskStatus}
        for task in self._live.values():
            counts[task.status.value] += 1
        counts[TaskStatus.COMPLETED.value] = len(self._completed)
        counts[TaskStatus.FAILED.value] = len(self._failed)
        return counts

    async def wait_for(self, task_id: str, timeout: Optional[float] = None) -> IngestionTask:
        """
        Wait until a task completes or fails.

        Raises:
            TaskError: If the task is unknown
            asyncio.TimeoutError: If `timeout` elapses first
        """
        task = self.get_task(task_id)
        if task is None:
            raise TaskError("Unknown task", context={"task_id": task_id})

        event = self._done_events.get(task_id)
        if event is not None and not task.is_finished:
            await asyncio.wait_for(event.wait(), timeout)
        return task

    async def join(self) -> None:
        """Wait until every live task (including delayed retries) has finished."""
        while self._live:
            task_id = next(iter(self._live))
            await self.wait_for(task_id)
