"""Workspace run orchestration: the main agent and its collaborators."""

from workspace_orchestrator.orchestrator.main_agent import WorkspaceOrchestrator
from workspace_orchestrator.orchestrator.registry import get_main_agent
from workspace_orchestrator.orchestrator.run_state import RunState

__all__ = ["RunState", "WorkspaceOrchestrator", "get_main_agent"]
