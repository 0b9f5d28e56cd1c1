"""Versioned main agents.

Workspaces are run by a specific main-agent version so that behaviour changes
can ship side by side with the version existing workspaces were built for.
"""

from __future__ import annotations

from typing import Any

from workspace_orchestrator.channels.base import Channel
from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.main_agent import WorkspaceOrchestrator

MAIN_AGENTS: dict[str, type[WorkspaceOrchestrator]] = {
    WorkspaceOrchestrator.version: WorkspaceOrchestrator,
}


def available_versions() -> list[str]:
    return sorted(MAIN_AGENTS)


def get_main_agent(
    version: str, workspace: WorkspaceData, channel: Channel, **kwargs: Any
) -> WorkspaceOrchestrator:
    """Build the main agent registered for ``version``.

    Raises:
        ValueError: No main agent is registered under ``version``.
    """
    agent_cls = MAIN_AGENTS.get(version)
    if agent_cls is None:
        raise ValueError(
            f"MainAgent version '{version}' does not exist. Available: {available_versions()}"
        )
    return agent_cls(workspace, channel, **kwargs)
