"""Agent runtimes."""

from workspace_orchestrator.agents.runtime import AgentRuntime

__all__ = ["AgentRuntime"]
