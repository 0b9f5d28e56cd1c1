"""Live channel backed by a FastAPI WebSocket."""

from __future__ import annotations

import logging

from fastapi import WebSocket, WebSocketDisconnect

from workspace_orchestrator.channels.base import Envelope, Handler, Subscriptions

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """Sends envelopes as JSON frames.

    Inbound frames are read by the server receive loop and handed to
    :meth:`deliver`, which fans them out to subscribers.
    """

    def __init__(self, websocket: WebSocket, connection_id: str) -> None:
        self._websocket = websocket
        self.connection_id = connection_id
        self._subscriptions = Subscriptions()
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def send(self, envelope: Envelope) -> None:
        if not self._open:
            logger.debug(
                "Dropping envelope for closed connection",
                extra={"connection_id": self.connection_id, "event_type": envelope.type},
            )
            return
        try:
            await self._websocket.send_json(envelope.to_wire())
        except (WebSocketDisconnect, RuntimeError):
            self._open = False
            logger.info(
                "WebSocket connection lost while sending",
                extra={"connection_id": self.connection_id},
            )

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._subscriptions.subscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        self._subscriptions.unsubscribe(event_type, handler)

    def deliver(self, envelope: Envelope) -> int:
        return self._subscriptions.deliver(envelope)

    def close(self) -> None:
        self._open = False
