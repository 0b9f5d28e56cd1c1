"""Event transports used to observe and drive runs."""

from workspace_orchestrator.channels.base import Channel, Envelope
from workspace_orchestrator.channels.emulated import EmulatedChannel
from workspace_orchestrator.channels.hub import ConnectionHub
from workspace_orchestrator.channels.prompts import PromptBroker
from workspace_orchestrator.channels.websocket import WebSocketChannel

__all__ = [
    "Channel",
    "ConnectionHub",
    "EmulatedChannel",
    "Envelope",
    "PromptBroker",
    "WebSocketChannel",
]
