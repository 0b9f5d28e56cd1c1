"""Unit tests for the per-source dispatch queues."""

from __future__ import annotations

import asyncio

from workspace_orchestrator.triggers.models import Job
from workspace_orchestrator.triggers.queue import DispatchQueue


async def test_jobs_run_one_at_a_time_in_order() -> None:
    running = 0
    peak = 0
    order: list[str] = []

    async def handler(job: Job) -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        order.append(job.workspace_id)
        running -= 1

    queue = DispatchQueue("webhook", handler)
    for workspace_id in ("a", "b", "c"):
        queue.enqueue(Job(workspace_id))

    await asyncio.wait_for(queue.join(), timeout=1)

    assert order == ["a", "b", "c"]
    assert peak == 1
    assert queue.status() == {
        "name": "webhook",
        "pending": 0,
        "processing": False,
        "processed": 3,
        "failed": 0,
    }


async def test_failing_job_does_not_stop_the_queue() -> None:
    done: list[str] = []

    async def handler(job: Job) -> None:
        if job.workspace_id == "bad":
            raise RuntimeError("workspace crashed")
        done.append(job.workspace_id)

    queue = DispatchQueue("telegram", handler)
    queue.enqueue(Job("bad"))
    queue.enqueue(Job("good"))

    await asyncio.wait_for(queue.join(), timeout=1)

    assert done == ["good"]
    assert queue.failed == 1
    assert queue.processed == 2


async def test_clear_drops_pending_jobs_only() -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    seen: list[str] = []

    async def handler(job: Job) -> None:
        seen.append(job.workspace_id)
        started.set()
        await release.wait()

    queue = DispatchQueue("scheduled", handler)
    queue.enqueue(Job("first"))
    queue.enqueue(Job("second"))
    await started.wait()

    assert queue.clear() == 1
    release.set()
    await asyncio.wait_for(queue.join(), timeout=1)

    assert seen == ["first"]
