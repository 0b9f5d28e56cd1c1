"""Running workflows and tools on behalf of tasks.

A workflow task sends ``run_workflow`` over the run's channel and waits for
the reply carrying the same request id. The other end either executed the
workflow already (``workflow_result``) or hands back the workflow body
(``workflow_json``) for this process to execute with its engine.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol
from uuid import uuid4

import httpx

from workspace_orchestrator.channels.base import Channel, Envelope
from workspace_orchestrator.errors import WorkflowExecutionError
from workspace_orchestrator.models import Task, Workflow

logger = logging.getLogger(__name__)

REPLY_TYPES = ("workflow_result", "workflow_json", "error")


class WorkflowEngine(Protocol):
    """The node-graph evaluator. Returns the raw execution result."""

    async def execute(self, workflow: Workflow, input: str | None) -> Any: ...


class ToolInvoker(Protocol):
    """Calls an external (MCP) tool for a task and returns its text output."""

    async def invoke(self, tool_id: str, task: Task, context: str) -> str: ...


class HttpWorkflowEngine:
    """Delegates execution to a workflow evaluator service over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def execute(self, workflow: Workflow, input: str | None) -> Any:
        if not self.base_url:
            raise WorkflowExecutionError(
                f"Cannot execute workflow '{workflow.id}': no workflow engine configured "
                "(set ORCHESTRATOR_WORKFLOW_ENGINE_URL)"
            )
        client = await self._ensure_client()
        try:
            response = await client.post(
                f"{self.base_url}/execute",
                json={"workflow": workflow.model_dump(mode="json", by_alias=True), "input": input},
            )
        except httpx.TimeoutException as e:
            raise WorkflowExecutionError(
                f"Workflow '{workflow.id}' timed out after {self.timeout_seconds}s"
            ) from e
        except httpx.HTTPError as e:
            raise WorkflowExecutionError(f"Workflow engine unreachable: {e}") from e

        if response.status_code >= 400:
            raise WorkflowExecutionError(
                f"Workflow engine rejected '{workflow.id}' "
                f"({response.status_code}): {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise WorkflowExecutionError(
                f"Workflow engine returned a non-JSON body for '{workflow.id}': {response.text[:200]}"
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def extract_final_result(result: Any) -> Any:
    """Pick the final output out of an engine result."""
    if isinstance(result, dict) and "finalResult" in result:
        return result["finalResult"]
    return result


def parse_workflow_body(body: Any) -> Workflow:
    """Accept a workflow as sent by a client: JSON text, a wrapper with ``data``, or a dict."""
    try:
        wrapper = json.loads(body) if isinstance(body, str) else body
        inner = wrapper.get("data") if isinstance(wrapper, dict) else None
        if isinstance(inner, str):
            inner = json.loads(inner)
        return Workflow.model_validate(inner if isinstance(inner, dict) else wrapper)
    except (json.JSONDecodeError, ValueError) as e:
        raise WorkflowExecutionError(f"Invalid workflow body: {e}") from e


class WorkflowRunner:
    def __init__(self, engine: WorkflowEngine, *, timeout_seconds: float = 30.0) -> None:
        self.engine = engine
        self.timeout_seconds = timeout_seconds

    async def request(self, channel: Channel, workflow_id: str, input: str | None) -> Envelope:
        """Send ``run_workflow`` and wait for the matching reply.

        Raises:
            WorkflowExecutionError: No reply within the timeout.
        """
        request_id = uuid4().hex
        reply: asyncio.Future[Envelope] = asyncio.get_running_loop().create_future()

        def on_reply(envelope: Envelope) -> None:
            if envelope.id == request_id and not reply.done():
                reply.set_result(envelope)

        for reply_type in REPLY_TYPES:
            channel.subscribe(reply_type, on_reply)
        try:
            await channel.send(
                Envelope(
                    type="run_workflow",
                    id=request_id,
                    data={"workflowId": workflow_id, "input": input},
                )
            )
            return await asyncio.wait_for(reply, self.timeout_seconds)
        except TimeoutError as e:
            await channel.send(
                Envelope(type="cancel_workflow", id=request_id, data={"workflowId": workflow_id})
            )
            raise WorkflowExecutionError(
                f"Timed out after {self.timeout_seconds}s waiting for workflow '{workflow_id}'"
            ) from e
        finally:
            for reply_type in REPLY_TYPES:
                channel.unsubscribe(reply_type, on_reply)

    async def run(self, channel: Channel, workflow_id: str, input: str | None) -> Any:
        """Run a workflow through the channel and return its final result."""
        envelope = await self.request(channel, workflow_id, input)

        if envelope.type == "error":
            detail = envelope.data.get("message") if isinstance(envelope.data, dict) else None
            raise WorkflowExecutionError(
                f"Workflow '{workflow_id}' failed: {detail or envelope.data or 'unknown error'}"
            )
        if envelope.type == "workflow_result":
            return extract_final_result(envelope.data)

        workflow = parse_workflow_body(envelope.data)
        logger.debug("Executing workflow body in-process", extra={"workflow_id": workflow.id})
        return extract_final_result(await self.engine.execute(workflow, input))
