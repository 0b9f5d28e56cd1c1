"""In-process loopback channel for headless (triggered) runs.

There is no client on the other end to hand back workflow bodies, so
``run_workflow`` requests are answered locally: the body is looked up in the
workspace store, executed with the workflow engine and the result is
delivered to this channel's subscribers. A ``cancel_workflow`` envelope with
the same request id stops an execution the requester gave up on. Everything
else is broadcast to the live connections so open consoles can follow
triggered runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from workspace_orchestrator.channels.base import Envelope, Handler, Subscriptions
from workspace_orchestrator.channels.hub import ConnectionHub
from workspace_orchestrator.errors import OrchestratorError
from workspace_orchestrator.state.workspace_store import WorkspaceStore

if TYPE_CHECKING:
    from workspace_orchestrator.orchestrator.workflows import WorkflowEngine

logger = logging.getLogger(__name__)


class EmulatedChannel:
    def __init__(
        self,
        workspace_id: str,
        store: WorkspaceStore,
        engine: WorkflowEngine,
        hub: ConnectionHub | None = None,
    ) -> None:
        self.workspace_id = workspace_id
        self._store = store
        self._engine = engine
        self._hub = hub
        self._subscriptions = Subscriptions()
        self._in_flight: dict[str, asyncio.Task[None]] = {}

    async def send(self, envelope: Envelope) -> None:
        if envelope.type == "run_workflow":
            request_id = envelope.id or ""
            task = asyncio.create_task(self._serve_workflow(envelope))
            self._in_flight[request_id] = task
            task.add_done_callback(lambda _: self._in_flight.pop(request_id, None))
            return
        if envelope.type == "cancel_workflow":
            self._cancel(envelope.id or "")
            return
        if self._hub is not None:
            await self._hub.broadcast(envelope)

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._subscriptions.subscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        self._subscriptions.unsubscribe(event_type, handler)

    async def _serve_workflow(self, request: Envelope) -> None:
        data = request.data if isinstance(request.data, dict) else {}
        workflow_id = str(data.get("workflowId") or "")
        input = data.get("input")

        try:
            workflow = self._store.get_workflow(self.workspace_id, workflow_id)
            if workflow is None:
                raise OrchestratorError(
                    f"Workflow '{workflow_id}' not found in workspace '{self.workspace_id}'"
                )
            result = await self._engine.execute(workflow, input)
        except OrchestratorError as e:
            logger.warning(
                "Emulated workflow request failed",
                extra={"workspace_id": self.workspace_id, "workflow_id": workflow_id, "error": str(e)},
            )
            self._subscriptions.deliver(
                Envelope(type="error", id=request.id, data={"message": str(e)})
            )
            return
        except Exception as e:
            logger.exception(
                "Workflow engine raised while serving emulated request",
                extra={"workspace_id": self.workspace_id, "workflow_id": workflow_id},
            )
            self._subscriptions.deliver(
                Envelope(type="error", id=request.id, data={"message": str(e)})
            )
            return

        self._subscriptions.deliver(Envelope(type="workflow_result", id=request.id, data=result))

    def _cancel(self, request_id: str) -> None:
        task = self._in_flight.get(request_id)
        if task is None or task.done():
            return
        task.cancel()
        logger.info(
            "Cancelled abandoned workflow request",
            extra={"workspace_id": self.workspace_id, "request_id": request_id},
        )
