"""Routes inbound WebSocket messages.

Every message is validated before it has any side effect; a message that does
not validate is answered with an ``error`` envelope on the same connection.
Workspace runs are started as background tasks so the receive loop keeps
delivering the replies (``workflow_json``/``workflow_result``) those runs
wait for.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from workspace_orchestrator.channels.base import Envelope
from workspace_orchestrator.channels.websocket import WebSocketChannel
from workspace_orchestrator.errors import OrchestratorError
from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.main_agent import WorkspaceOrchestrator
from workspace_orchestrator.server.models import (
    AbortRequest,
    ConsoleInputRequest,
    InboundMessage,
    RegisterTriggerRequest,
    UnregisterTriggerRequest,
)
from workspace_orchestrator.server.runtime import AppRuntime

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

REPLY_TYPES = frozenset({"workflow_json", "workflow_result"})


def _decode(data: Any) -> Any:
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return data
    return data


async def send_error(channel: WebSocketChannel, message: str, **extra: Any) -> None:
    await channel.send(Envelope(type="error", message=message, **extra))


class MessageDispatcher:
    def __init__(self, runtime: AppRuntime) -> None:
        self.runtime = runtime
        self._runs: dict[str, tuple[str, WorkspaceOrchestrator]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    async def _parse(
        self, channel: WebSocketChannel, model: type[ModelT], message: InboundMessage
    ) -> ModelT | None:
        try:
            return model.model_validate(_decode(message.data))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'data'}: {err['msg']}"
                for err in e.errors()
            )
            await send_error(channel, f"Invalid {message.type} message: {problems}")
            return None

    async def handle(self, channel: WebSocketChannel, raw: Any) -> None:
        try:
            message = InboundMessage.model_validate(raw)
        except ValidationError:
            await send_error(channel, "Invalid message format")
            return

        logger.debug(
            "Inbound message",
            extra={"connection_id": channel.connection_id, "message_type": message.type},
        )
        match message.type:
            case "ping":
                await channel.send(Envelope(type="pong"))
            case "run_workspace":
                await self._run_workspace(channel, message)
            case "abort":
                await self._abort(channel, message)
            case "register_trigger":
                await self._register_trigger(channel, message)
            case "unregister_trigger":
                await self._unregister_trigger(channel, message)
            case "console_input":
                await self._console_input(channel, message)
            case "get_pending_prompts":
                await channel.send(
                    Envelope(
                        type="pending_prompts",
                        data=[p.to_json() for p in self.runtime.prompts.pending()],
                    )
                )
            case reply if reply in REPLY_TYPES:
                delivered = channel.deliver(
                    Envelope(type=message.type, id=message.id, data=_decode(message.data))
                )
                if not delivered:
                    logger.info(
                        "Reply without a waiting run",
                        extra={"message_type": message.type, "envelope_id": message.id},
                    )
            case _:
                logger.info("Unknown message type", extra={"message_type": message.type})
                await send_error(channel, f"Unknown message type: {message.type}")

    async def _run_workspace(self, channel: WebSocketChannel, message: InboundMessage) -> None:
        workspace = await self._parse(channel, WorkspaceData, message)
        if workspace is None:
            return
        try:
            orchestrator = self.runtime.build_orchestrator(
                workspace, channel, prompts=self.runtime.prompts
            )
        except ValueError as e:
            await send_error(channel, str(e))
            return

        self._runs[orchestrator.run_id] = (channel.connection_id, orchestrator)
        await channel.send(
            Envelope(
                type="run_started",
                data={"runId": orchestrator.run_id, "workspaceId": workspace.id},
            )
        )
        task = asyncio.create_task(self._execute(channel, orchestrator))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, channel: WebSocketChannel, orchestrator: WorkspaceOrchestrator) -> None:
        run_id = orchestrator.run_id
        try:
            results = await orchestrator.run()
        except OrchestratorError as e:
            logger.warning("Workspace run rejected", extra={"run_id": run_id, "error": str(e)})
            await send_error(channel, str(e), runId=run_id)
        except Exception as e:
            logger.exception("Workspace run crashed", extra={"run_id": run_id})
            await send_error(channel, f"Workspace run failed: {e}", runId=run_id)
        else:
            await channel.send(
                Envelope(
                    type="run_completed",
                    data={"runId": run_id, "results": results, "errors": orchestrator.errors},
                )
            )
        finally:
            self._runs.pop(run_id, None)

    async def _abort(self, channel: WebSocketChannel, message: InboundMessage) -> None:
        request = await self._parse(channel, AbortRequest, message)
        if request is None:
            return
        if request.run_id is not None:
            entry = self._runs.get(request.run_id)
            targets = [entry[1]] if entry is not None else []
        else:
            targets = [o for owner, o in self._runs.values() if owner == channel.connection_id]

        if not targets:
            await send_error(channel, "No active run to abort")
            return
        for orchestrator in targets:
            orchestrator.abort()
        await channel.send(
            Envelope(type="abort_requested", data={"runIds": [o.run_id for o in targets]})
        )

    async def _register_trigger(self, channel: WebSocketChannel, message: InboundMessage) -> None:
        request = await self._parse(channel, RegisterTriggerRequest, message)
        if request is None:
            return
        workspace_id = request.workspace.id
        self.runtime.store.put(request.workspace)
        result = await self.runtime.register_trigger(workspace_id, request.trigger)
        if not result.success and not self.runtime.has_triggers(workspace_id):
            self.runtime.store.remove(workspace_id)
        await channel.send(
            Envelope(
                type="trigger_registered",
                data={
                    "workspaceId": workspace_id,
                    "triggerType": request.trigger.type,
                    **result.to_wire(),
                },
            )
        )

    async def _unregister_trigger(self, channel: WebSocketChannel, message: InboundMessage) -> None:
        request = await self._parse(channel, UnregisterTriggerRequest, message)
        if request is None:
            return
        removed = await self.runtime.unregister_trigger(request.workspace_id, request.trigger_type)
        if not self.runtime.has_triggers(request.workspace_id):
            self.runtime.store.remove(request.workspace_id)
        await channel.send(
            Envelope(
                type="trigger_unregistered",
                data={
                    "workspaceId": request.workspace_id,
                    "triggerType": request.trigger_type,
                    "success": removed,
                },
            )
        )

    async def _console_input(self, channel: WebSocketChannel, message: InboundMessage) -> None:
        request = await self._parse(channel, ConsoleInputRequest, message)
        if request is None:
            return
        if not self.runtime.prompts.resolve(request.prompt_id, request.message):
            await send_error(
                channel,
                "Failed to resolve prompt - prompt not found or already resolved",
                promptId=request.prompt_id,
            )
            return
        await self.runtime.hub.broadcast(
            Envelope(
                type="console_input_resolved",
                data={"promptId": request.prompt_id, "message": request.message},
            )
        )

    def disconnected(self, channel: WebSocketChannel) -> None:
        """Abort the runs a closed connection started; they stop at the next layer."""
        for owner, orchestrator in list(self._runs.values()):
            if owner == channel.connection_id:
                orchestrator.abort()
