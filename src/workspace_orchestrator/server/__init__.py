"""FastAPI server adapter for workspace-orchestrator.

Design intent:
- Keep run and trigger logic in `workspace_orchestrator.orchestrator.*` and
  `workspace_orchestrator.triggers.*`
- Keep server-specific concerns (routing, CORS, message validation) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from workspace_orchestrator.server.app import create_app
