"""CLI entrypoint.

- ``serve``: start the HTTP/WebSocket server.
- ``run``: run a workspace definition file headlessly and print its results.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from workspace_orchestrator import __version__
from workspace_orchestrator.channels.emulated import EmulatedChannel
from workspace_orchestrator.errors import ConfigurationError
from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.config import OrchestratorSettings
from workspace_orchestrator.orchestrator.logging import configure_logging
from workspace_orchestrator.orchestrator.registry import get_main_agent
from workspace_orchestrator.orchestrator.workflows import HttpWorkflowEngine, WorkflowRunner
from workspace_orchestrator.server.config import ServerSettings
from workspace_orchestrator.state.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workspace-orchestrator",
        description="Run AI-agent workspaces live or from triggers",
    )
    parser.add_argument(
        "--version", action="version", version=f"workspace-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Start the HTTP/WebSocket server")
    serve.add_argument("--host", default=None, help="Bind address (default: ORCHESTRATOR_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: ORCHESTRATOR_PORT)")

    run = subparsers.add_parser("run", help="Run a workspace JSON file headlessly")
    run.add_argument("workspace", type=Path, help="Path to a workspace definition (JSON)")
    run.add_argument(
        "--payload",
        default=None,
        help="Extra context handed to the root tasks, as if a trigger had fired",
    )

    return parser


def _load_workspace(path: Path) -> WorkspaceData:
    return WorkspaceData.model_validate(json.loads(path.read_text(encoding="utf-8")))


async def _run_workspace(
    settings: OrchestratorSettings, workspace: WorkspaceData, payload: str | None
) -> dict[str, str]:
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
            workflow_runner=WorkflowRunner(
                engine, timeout_seconds=settings.workflow_request_timeout_seconds
            ),
            trigger_payload=payload,
        )
        results = await orchestrator.run()
        if orchestrator.errors:
            logger.warning("Some tasks failed", extra={"errors": orchestrator.errors})
        return results
    finally:
        await engine.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OrchestratorSettings()
        server_settings = ServerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        from workspace_orchestrator.server.app import create_app

        uvicorn.run(
            create_app(server_settings),
            host=args.host or server_settings.host,
            port=args.port or server_settings.port,
            log_config=None,
        )
        return 0

    if args.command == "run":
        try:
            workspace = _load_workspace(args.workspace)
        except (OSError, ValueError) as e:
            print(f"Cannot load workspace {args.workspace}: {e}", file=sys.stderr)
            return 2

        try:
            results = asyncio.run(_run_workspace(settings, workspace, args.payload))
        except ConfigurationError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 3
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2

        print(json.dumps(results, indent=2, ensure_ascii=False))
        failed = [t.id for t in workspace.tasks if t.id not in results]
        return 4 if failed else 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
