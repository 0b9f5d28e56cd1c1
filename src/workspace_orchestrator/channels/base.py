"""Channel contract shared by live connections and headless runs.

The orchestrator only ever talks to a :class:`Channel`. Whether the other end
is a browser on a WebSocket or an in-process emulation is decided by whoever
builds the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


def utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class Envelope(BaseModel):
    """One message on a channel, in either direction."""

    model_config = ConfigDict(extra="allow")

    type: str
    data: Any = None
    id: str | None = None
    timestamp: str = Field(default_factory=utc_iso_now)

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        if payload.get("id") is None:
            payload.pop("id", None)
        return payload


Handler = Callable[[Envelope], None]


class Channel(Protocol):
    async def send(self, envelope: Envelope) -> None: ...

    def subscribe(self, event_type: str, handler: Handler) -> None: ...

    def unsubscribe(self, event_type: str, handler: Handler) -> None: ...


class Subscriptions:
    """Per-type handler registry used by the channel implementations."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event_type]

    def deliver(self, envelope: Envelope) -> int:
        """Call every handler subscribed to the envelope's type.

        A failing handler is logged and does not stop the others.

        Returns:
            Number of handlers called.
        """
        handlers = list(self._handlers.get(envelope.type, ()))
        for handler in handlers:
            try:
                handler(envelope)
            except Exception:
                logger.exception(
                    "Channel subscriber failed",
                    extra={"event_type": envelope.type, "envelope_id": envelope.id},
                )
        return len(handlers)

    def has_subscribers(self, event_type: str) -> bool:
        return bool(self._handlers.get(event_type))
