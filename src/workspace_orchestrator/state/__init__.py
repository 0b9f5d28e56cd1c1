"""Process-wide state owned by bootstrap."""

from workspace_orchestrator.state.workspace_store import WorkspaceStore

__all__ = ["WorkspaceStore"]
