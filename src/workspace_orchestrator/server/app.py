"""FastAPI app factory.

Endpoints are thin wrappers: inbound trigger requests are validated and
queued, everything else lives in the runtime and the dispatcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from workspace_orchestrator import __version__
from workspace_orchestrator.channels.base import Envelope
from workspace_orchestrator.channels.websocket import WebSocketChannel
from workspace_orchestrator.server.config import ServerSettings
from workspace_orchestrator.server.dispatcher import MessageDispatcher, send_error
from workspace_orchestrator.server.runtime import AppRuntime, build_runtime
from workspace_orchestrator.triggers.models import Job

logger = logging.getLogger(__name__)


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


async def _cleanup_prompts(runtime: AppRuntime) -> None:
    interval = runtime.settings.prompt_max_age_seconds
    while True:
        await asyncio.sleep(interval)
        dropped = runtime.prompts.cleanup(interval)
        if dropped:
            logger.info("Dropped stale prompts", extra={"count": dropped})


def create_app(settings: ServerSettings | None = None, runtime: AppRuntime | None = None) -> FastAPI:
    settings = settings or (runtime.settings if runtime is not None else ServerSettings())
    runtime = runtime or build_runtime(settings)
    dispatcher = MessageDispatcher(runtime)

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        cleanup = asyncio.create_task(_cleanup_prompts(runtime))
        try:
            yield
        finally:
            cleanup.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup
            await runtime.shutdown()

    app = FastAPI(
        title="Workspace Orchestrator",
        version=__version__,
        description="Runs AI-agent workspaces live over WebSocket or from triggers.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Expose runtime for request handlers and tests.
    app.state.settings = settings
    app.state.runtime = runtime
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "connections": len(runtime.hub)}

    @app.get("/api/v1/triggers/{workspace_id}")
    def trigger_status(workspace_id: str) -> dict[str, Any]:
        return runtime.trigger_status(workspace_id)

    @app.get("/api/v1/queues")
    def queue_status() -> dict[str, dict[str, object]]:
        return runtime.queue_status()

    @app.api_route("/webhook/{workspace_id}", methods=["POST", "GET"])
    async def webhook(
        workspace_id: str,
        request: Request,
        x_webhook_secret: str | None = Header(default=None),
        secret: str | None = Query(default=None),
    ) -> dict[str, object]:
        if not runtime.webhooks.is_registered(workspace_id):
            raise HTTPException(status_code=404, detail="Webhook not found")
        registration = runtime.webhooks.validate(workspace_id, x_webhook_secret or secret)
        if registration is None:
            raise HTTPException(status_code=401, detail="Invalid or missing webhook secret")

        query = {k: v for k, v in request.query_params.items() if k != "secret"}
        payload = {
            "method": request.method,
            "body": await _read_payload(request) if request.method == "POST" else None,
            "query": query,
        }
        runtime.queues["webhook"].enqueue(Job(workspace_id, payload))
        return {"success": True, "message": "Webhook received and queued", "workspaceId": workspace_id}

    @app.post("/telegram/{workspace_id}")
    async def telegram_update(
        workspace_id: str,
        request: Request,
        x_telegram_bot_api_secret_token: str | None = Header(default=None),
    ) -> dict[str, object]:
        if not runtime.telegram.is_registered(workspace_id):
            raise HTTPException(status_code=404, detail="Telegram bot not registered")
        registration = runtime.telegram.validate(workspace_id, x_telegram_bot_api_secret_token)
        if registration is None:
            raise HTTPException(status_code=401, detail="Invalid or missing secret token")

        update = await _read_payload(request)
        if not isinstance(update, dict):
            raise HTTPException(status_code=400, detail="Telegram update must be a JSON object")

        reason = runtime.telegram.filter_reason(registration, update)
        if reason is not None:
            logger.info(
                "Telegram update filtered",
                extra={"workspace_id": workspace_id, "update_id": update.get("update_id"), "reason": reason},
            )
            return {"ok": True, "filtered": True}

        runtime.queues["telegram"].enqueue(Job(workspace_id, update))
        return {"ok": True}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        channel = WebSocketChannel(websocket, uuid4().hex)
        runtime.hub.add(channel)
        await channel.send(
            Envelope(type="connected", message="Connected to workspace orchestrator")
        )
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    raw = json.loads(text)
                except ValueError:
                    await send_error(channel, "Invalid message format")
                    continue
                await dispatcher.handle(channel, raw)
        except WebSocketDisconnect:
            logger.debug("WebSocket closed by client", extra={"connection_id": channel.connection_id})
        finally:
            dispatcher.disconnected(channel)
            runtime.hub.remove(channel)

    return app
