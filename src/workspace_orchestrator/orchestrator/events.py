"""Lifecycle events of a run.

Every event goes out over the run's channel as ``{"type": "message", "data":
<ConsoleEvent>}``. Ids are monotonic within a run so consoles can order them.
"""

from __future__ import annotations

import itertools
import json
import logging
import time
from typing import Any

from workspace_orchestrator.channels.base import Channel, Envelope
from workspace_orchestrator.models import ConsoleEvent, ConsoleEventType

logger = logging.getLogger(__name__)


class EventEmitter:
    def __init__(self, channel: Channel, run_id: str) -> None:
        self.channel = channel
        self.run_id = run_id
        self._ids = itertools.count(1)
        self.history: list[ConsoleEvent] = []

    async def emit(
        self,
        type: ConsoleEventType,
        message: str,
        *,
        details: str | None = None,
        results: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> ConsoleEvent:
        event = ConsoleEvent(
            id=next(self._ids),
            run_id=self.run_id,
            timestamp=int(time.time() * 1000),
            type=type,
            message=message,
            details=details,
            results=results,
            data=data,
        )
        self.history.append(event)
        logger.debug(
            "Run event",
            extra={"run_id": self.run_id, "event_id": event.id, "event_type": type},
        )
        await self.channel.send(
            Envelope(type="message", data=event.model_dump(mode="json", by_alias=True))
        )
        return event

    async def system(self, message: str, **kwargs: Any) -> ConsoleEvent:
        return await self.emit("system", message, **kwargs)

    async def info(self, message: str, **kwargs: Any) -> ConsoleEvent:
        return await self.emit("info", message, **kwargs)

    async def warning(self, message: str, **kwargs: Any) -> ConsoleEvent:
        return await self.emit("warning", message, **kwargs)

    async def success(self, message: str, **kwargs: Any) -> ConsoleEvent:
        return await self.emit("success", message, **kwargs)

    async def error(self, message: str, **kwargs: Any) -> ConsoleEvent:
        return await self.emit("error", message, **kwargs)

    async def task_succeeded(self, step: int, total: int, title: str, result: str) -> ConsoleEvent:
        return await self.success(
            f"[{step}/{total}] Task '{title}' completed successfully.",
            results=json.dumps({"result": result}, indent=2),
        )

    async def task_failed(self, step: int, total: int, title: str, error: str) -> ConsoleEvent:
        return await self.error(f"[{step}/{total}] Task '{title}' failed.", details=error)
