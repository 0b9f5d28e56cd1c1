"""Unit tests for channels, the connection hub and the prompt broker."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import WebSocketDisconnect

from workspace_orchestrator.channels.base import Envelope, Subscriptions
from workspace_orchestrator.channels.emulated import EmulatedChannel
from workspace_orchestrator.channels.hub import ConnectionHub
from workspace_orchestrator.channels.prompts import PromptBroker
from workspace_orchestrator.channels.websocket import WebSocketChannel
from workspace_orchestrator.errors import WorkflowExecutionError
from workspace_orchestrator.models import Workflow, WorkspaceData
from workspace_orchestrator.orchestrator.workflows import WorkflowRunner
from workspace_orchestrator.state.workspace_store import WorkspaceStore


def test_envelope_wire_format_drops_missing_id() -> None:
    wire = Envelope(type="pong").to_wire()

    assert wire["type"] == "pong"
    assert "id" not in wire
    assert "timestamp" in wire
    assert Envelope(type="error", message="boom").to_wire()["message"] == "boom"


def test_failing_subscriber_does_not_block_others() -> None:
    subscriptions = Subscriptions()
    seen: list[str] = []

    def broken(envelope: Envelope) -> None:
        raise RuntimeError("handler bug")

    subscriptions.subscribe("workflow_result", broken)
    subscriptions.subscribe("workflow_result", lambda e: seen.append(e.type))

    assert subscriptions.deliver(Envelope(type="workflow_result")) == 2
    assert seen == ["workflow_result"]


def test_unsubscribe_removes_handler() -> None:
    subscriptions = Subscriptions()
    handler = Mock()
    subscriptions.subscribe("x", handler)
    subscriptions.unsubscribe("x", handler)
    subscriptions.unsubscribe("x", handler)

    assert subscriptions.deliver(Envelope(type="x")) == 0
    assert subscriptions.has_subscribers("x") is False


async def test_websocket_channel_closes_after_disconnect() -> None:
    websocket = Mock()
    websocket.send_json = AsyncMock(side_effect=WebSocketDisconnect())
    channel = WebSocketChannel(websocket, "c1")

    await channel.send(Envelope(type="message"))
    await channel.send(Envelope(type="message"))

    assert channel.is_open is False
    assert websocket.send_json.await_count == 1


async def test_hub_broadcast_drops_broken_connections() -> None:
    good_socket = Mock(send_json=AsyncMock())
    bad_socket = Mock(send_json=AsyncMock(side_effect=RuntimeError("closed")))
    hub = ConnectionHub()
    hub.add(WebSocketChannel(good_socket, "good"))
    hub.add(WebSocketChannel(bad_socket, "bad"))

    sent = await hub.broadcast(Envelope(type="message", data={"message": "hi"}))

    assert sent == 1
    assert len(hub) == 1
    good_socket.send_json.assert_awaited_once()


async def test_prompt_resolved_before_timeout() -> None:
    broker = PromptBroker()
    waiter = asyncio.create_task(broker.wait_for_input("p1", timeout=1, source="task-1"))
    await asyncio.sleep(0)

    assert [p.to_json()["promptId"] for p in broker.pending()] == ["p1"]
    assert broker.resolve("p1", "yes") is True
    assert await waiter == "yes"
    assert broker.resolve("p1", "again") is False
    assert broker.pending() == []


async def test_prompt_timeout_discards_prompt() -> None:
    broker = PromptBroker()

    with pytest.raises(TimeoutError):
        await broker.wait_for_input("p1", timeout=0.01)

    assert broker.resolve("p1", "late") is False


async def test_cleanup_drops_stale_prompts() -> None:
    broker = PromptBroker()
    prompt = broker.register("old")
    prompt.created_at -= 10 * 60 * 1000
    broker.register("fresh")

    assert broker.cleanup(max_age_seconds=300) == 1
    assert [p.prompt_id for p in broker.pending()] == ["fresh"]
    assert prompt.future.cancelled()


class _Engine:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error

    async def execute(self, workflow: Workflow, input: str | None) -> Any:
        if self.error is not None:
            raise self.error
        return {"finalResult": f"{workflow.id}:{input}"}


def _store(tmp_path: Path) -> WorkspaceStore:
    store = WorkspaceStore(tmp_path / "workspaces")
    store.put(WorkspaceData(id="ws-1", name="W", workflows=[Workflow(id="wf-1")]))
    return store


async def _request(channel: EmulatedChannel, workflow_id: str) -> Envelope:
    replies: asyncio.Queue[Envelope] = asyncio.Queue()
    for kind in ("workflow_result", "error"):
        channel.subscribe(kind, replies.put_nowait)
    await channel.send(Envelope(type="run_workflow", id="r1", data={"workflowId": workflow_id, "input": "x"}))
    return await asyncio.wait_for(replies.get(), timeout=1)


async def test_emulated_channel_executes_stored_workflow(tmp_path: Path) -> None:
    channel = EmulatedChannel("ws-1", _store(tmp_path), _Engine())

    reply = await _request(channel, "wf-1")

    assert reply.type == "workflow_result"
    assert reply.id == "r1"
    assert reply.data == {"finalResult": "wf-1:x"}


async def test_emulated_channel_reports_unknown_workflow(tmp_path: Path) -> None:
    channel = EmulatedChannel("ws-1", _store(tmp_path), _Engine())

    reply = await _request(channel, "wf-404")

    assert reply.type == "error"
    assert "Workflow 'wf-404' not found" in reply.data["message"]


async def test_emulated_channel_reports_engine_failures(tmp_path: Path) -> None:
    channel = EmulatedChannel(
        "ws-1", _store(tmp_path), _Engine(error=WorkflowExecutionError("engine down"))
    )

    reply = await _request(channel, "wf-1")

    assert reply.data == {"message": "engine down"}


async def test_emulated_channel_reports_unexpected_engine_errors(tmp_path: Path) -> None:
    channel = EmulatedChannel(
        "ws-1", _store(tmp_path), _Engine(error=ValueError("engine returned non-JSON body"))
    )
    runner = WorkflowRunner(_Engine(), timeout_seconds=5)
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(WorkflowExecutionError, match="engine returned non-JSON body"):
        await runner.run(channel, "wf-1", "x")

    assert loop.time() - started < 1


class _HangingEngine:
    def __init__(self) -> None:
        self.cancelled = asyncio.Event()

    async def execute(self, workflow: Workflow, input: str | None) -> Any:
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise


async def test_abandoned_workflow_request_is_cancelled(tmp_path: Path) -> None:
    engine = _HangingEngine()
    channel = EmulatedChannel("ws-1", _store(tmp_path), engine)
    runner = WorkflowRunner(engine, timeout_seconds=0.05)

    with pytest.raises(WorkflowExecutionError, match="Timed out"):
        await runner.run(channel, "wf-1", "x")

    await asyncio.wait_for(engine.cancelled.wait(), timeout=1)


async def test_emulated_channel_broadcasts_events(tmp_path: Path) -> None:
    hub = Mock(broadcast=AsyncMock(return_value=0))
    channel = EmulatedChannel("ws-1", _store(tmp_path), _Engine(), hub)

    await channel.send(Envelope(type="message", data={"message": "hi"}))

    hub.broadcast.assert_awaited_once()


def test_workspace_store_survives_a_new_instance(tmp_path: Path) -> None:
    _store(tmp_path)
    reopened = WorkspaceStore(tmp_path / "workspaces")

    assert reopened.get_workflow("ws-1", "wf-1") is not None
    assert reopened.ids() == ["ws-1"]
    assert reopened.remove("ws-1") is True
    assert reopened.get("ws-1") is None
