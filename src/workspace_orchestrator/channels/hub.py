"""Process-wide registry of live connections."""

from __future__ import annotations

import logging

from workspace_orchestrator.channels.base import Envelope
from workspace_orchestrator.channels.websocket import WebSocketChannel

logger = logging.getLogger(__name__)


class ConnectionHub:
    def __init__(self) -> None:
        self._channels: dict[str, WebSocketChannel] = {}

    def add(self, channel: WebSocketChannel) -> None:
        self._channels[channel.connection_id] = channel
        logger.info(
            "Client connected",
            extra={"connection_id": channel.connection_id, "connections": len(self._channels)},
        )

    def remove(self, channel: WebSocketChannel) -> None:
        channel.close()
        if self._channels.pop(channel.connection_id, None) is not None:
            logger.info(
                "Client disconnected",
                extra={"connection_id": channel.connection_id, "connections": len(self._channels)},
            )

    def __len__(self) -> int:
        return len(self._channels)

    async def broadcast(self, envelope: Envelope) -> int:
        """Send to every open connection and drop the ones that broke.

        Returns:
            Number of connections the envelope was sent to.
        """
        sent = 0
        for channel in list(self._channels.values()):
            await channel.send(envelope)
            if channel.is_open:
                sent += 1
            else:
                self.remove(channel)
        return sent
