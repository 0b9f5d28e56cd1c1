"""Single-consumer FIFO queues, one per trigger source.

At most one job of a queue runs at a time. When a job finishes, successfully
or not, the next one is scheduled on a fresh loop iteration rather than
started from the finishing job's stack. Jobs live in memory only; pending
jobs are lost on restart.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from workspace_orchestrator.triggers.models import Job

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[object]]


class DispatchQueue:
    def __init__(self, name: str, handler: JobHandler) -> None:
        self.name = name
        self._handler = handler
        self._jobs: deque[Job] = deque()
        self._processing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._current: asyncio.Task[None] | None = None
        self.processed = 0
        self.failed = 0

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def processing(self) -> bool:
        return self._processing

    def enqueue(self, job: Job) -> None:
        self._jobs.append(job)
        self._idle.clear()
        logger.info(
            "Job enqueued",
            extra={"queue": self.name, "workspace_id": job.workspace_id, "pending": len(self._jobs)},
        )
        self._process_next()

    def _process_next(self) -> None:
        if self._processing:
            return
        if not self._jobs:
            self._idle.set()
            return

        job = self._jobs.popleft()
        self._processing = True
        self._current = asyncio.get_running_loop().create_task(self._run(job))

    async def _run(self, job: Job) -> None:
        try:
            await self._handler(job)
        except Exception:
            self.failed += 1
            logger.exception(
                "Job failed", extra={"queue": self.name, "workspace_id": job.workspace_id}
            )
        finally:
            self.processed += 1
            self._processing = False
            self._current = None
            asyncio.get_running_loop().call_soon(self._process_next)

    def clear(self) -> int:
        """Drop pending jobs. The job in flight, if any, still finishes."""
        dropped = len(self._jobs)
        self._jobs.clear()
        if not self._processing:
            self._idle.set()
        if dropped:
            logger.info("Queue cleared", extra={"queue": self.name, "dropped": dropped})
        return dropped

    async def join(self) -> None:
        """Wait until the queue is empty and no job is running."""
        await self._idle.wait()

    def status(self) -> dict[str, object]:
        return {
            "name": self.name,
            "pending": len(self._jobs),
            "processing": self._processing,
            "processed": self.processed,
            "failed": self.failed,
        }
