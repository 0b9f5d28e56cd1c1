"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.config import OrchestratorSettings


@pytest.fixture
def settings(tmp_path: Path) -> OrchestratorSettings:
    """Settings isolated from the developer's .env."""
    return OrchestratorSettings(
        _env_file=None,
        AGENT_STATE_PATH=tmp_path / "agent_state",
        ORCHESTRATOR_OUTPUT_PATH=tmp_path / "Output",
        ORCHESTRATOR_WORKFLOW_REQUEST_TIMEOUT_SECONDS=1,
        ORCHESTRATOR_PROMPT_TIMEOUT_SECONDS=1,
        ORCHESTRATOR_AGENT_MAX_ITERATIONS=2,
        ORCHESTRATOR_WORKFLOW_ENGINE_URL="",
        MAIN_AGENT_VERSION="1.0.0",
    )


@pytest.fixture
def make_workspace() -> Callable[..., WorkspaceData]:
    """Build a workspace from camelCase overrides, as the frontend sends it."""

    def _make(**overrides: Any) -> WorkspaceData:
        raw: dict[str, Any] = {
            "id": "ws-1",
            "name": "Research",
            "mainLLM": {"provider": "openai", "model": "gpt-4o-mini"},
            "apiKey": "sk-test",
            "tasks": [],
            "connections": [],
            "agents": [],
            "workflows": [],
        }
        raw.update(overrides)
        return WorkspaceData.model_validate(raw)

    return _make
