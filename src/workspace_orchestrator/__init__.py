"""Workspace Orchestrator.

Runs AI-agent workspaces: a typed task graph is linearized into layers, each
task is dispatched to a workflow, an agent or a tool, and results flow into
downstream context. The same run loop serves the live WebSocket console and
headless triggers (cron schedules, inbound webhooks, Telegram bot updates).
"""

__version__ = "0.1.0"

from workspace_orchestrator.orchestrator.config import OrchestratorSettings

__all__ = ["__version__", "OrchestratorSettings"]
