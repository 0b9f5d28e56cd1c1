#!/usr/bin/env python3
"""Programmatic workspace run example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* build a two-task workspace (a workflow feeding an agentic task)
* run it headlessly and print each task's result

Workflow bodies are executed by the engine at ORCHESTRATOR_WORKFLOW_ENGINE_URL;
the agentic task needs an API key for the workspace's main LLM.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from workspace_orchestrator.channels.emulated import EmulatedChannel
from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.config import OrchestratorSettings
from workspace_orchestrator.orchestrator.logging import configure_logging
from workspace_orchestrator.orchestrator.registry import get_main_agent
from workspace_orchestrator.orchestrator.workflows import HttpWorkflowEngine, WorkflowRunner
from workspace_orchestrator.state.workspace_store import WorkspaceStore


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a small workspace (programmatic example).")
    parser.add_argument("--api-key", required=True, help="API key for the main LLM")
    parser.add_argument("--model", default="gpt-4o-mini", help="Main LLM model id")
    parser.add_argument("--topic", default="open-source LLM tooling", help="What to research")
    return parser.parse_args(argv)


def _workspace(args: argparse.Namespace) -> WorkspaceData:
    return WorkspaceData.model_validate(
        {
            "id": "example-research",
            "name": "Example Research",
            "mainLLM": {"provider": "openai", "model": args.model},
            "apiKey": args.api_key,
            "tasks": [
                {
                    "id": "fetch",
                    "title": "Fetch sources",
                    "type": "workflow",
                    "executorId": "wf-fetch",
                },
                {
                    "id": "summary",
                    "title": "Summarise",
                    "description": f"Summarise the findings about {args.topic}",
                    "expectedOutput": "Five bullet points",
                    "type": "agentic",
                },
            ],
            "connections": [{"fromTaskId": "fetch", "toTaskId": "summary"}],
            "agents": [{"id": "analyst", "name": "Analyst", "role": "research analyst"}],
            "workflows": [{"id": "wf-fetch", "name": "Fetch sources", "nodes": []}],
        }
    )


async def _run(settings: OrchestratorSettings, workspace: WorkspaceData) -> dict[str, str]:
    engine = HttpWorkflowEngine(
        settings.workflow_engine_url, timeout_seconds=settings.workflow_request_timeout_seconds
    )
    store = WorkspaceStore(settings.workspaces_state_dir)
    store.put(workspace)
    try:
        orchestrator = get_main_agent(
            settings.main_agent_version,
            workspace,
            EmulatedChannel(workspace.id, store, engine),
            settings=settings,
            workflow_runner=WorkflowRunner(engine),
        )
        results = await orchestrator.run()
        for task_id, error in orchestrator.errors.items():
            print(f"{task_id} failed: {error}")
        return results
    finally:
        await engine.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = OrchestratorSettings()
    configure_logging(settings.log_level)

    results = asyncio.run(_run(settings, _workspace(args)))
    for task_id, result in results.items():
        print(f"== {task_id}\n{result}\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
