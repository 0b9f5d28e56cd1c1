"""Process bootstrap: builds and owns every long-lived component.

Trigger registries, the workspace store, the connection hub and the dispatch
queues are created here once per process and passed to whoever needs them.
Tests build their own isolated runtime the same way.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, assert_never

import httpx

from workspace_orchestrator.channels.base import Channel
from workspace_orchestrator.channels.emulated import EmulatedChannel
from workspace_orchestrator.channels.hub import ConnectionHub
from workspace_orchestrator.channels.prompts import PromptBroker
from workspace_orchestrator.llm.config import LLMConfig
from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.orchestrator.config import OrchestratorSettings
from workspace_orchestrator.orchestrator.main_agent import WorkspaceOrchestrator
from workspace_orchestrator.orchestrator.registry import get_main_agent
from workspace_orchestrator.orchestrator.workflows import (
    HttpWorkflowEngine,
    ToolInvoker,
    WorkflowEngine,
    WorkflowRunner,
)
from workspace_orchestrator.server.config import ServerSettings
from workspace_orchestrator.state.workspace_store import WorkspaceStore
from workspace_orchestrator.triggers.models import (
    Job,
    RegistrationResult,
    ScheduledTrigger,
    TelegramTrigger,
    Trigger,
    TriggerKind,
    WebhookTrigger,
)
from workspace_orchestrator.triggers.queue import DispatchQueue, JobHandler
from workspace_orchestrator.triggers.scheduled import ScheduledTriggerManager
from workspace_orchestrator.triggers.telegram import TelegramTriggerManager
from workspace_orchestrator.triggers.telegram_client import TelegramBotClient
from workspace_orchestrator.triggers.webhook import WebhookTriggerManager

logger = logging.getLogger(__name__)


@dataclass
class AppRuntime:
    settings: ServerSettings
    orchestrator_settings: OrchestratorSettings
    store: WorkspaceStore
    hub: ConnectionHub
    prompts: PromptBroker
    engine: WorkflowEngine
    scheduled: ScheduledTriggerManager
    webhooks: WebhookTriggerManager
    telegram: TelegramTriggerManager
    queues: dict[TriggerKind, DispatchQueue] = field(default_factory=dict)
    llm_defaults: LLMConfig | None = None
    tool_invoker: ToolInvoker | None = None

    def build_orchestrator(
        self, workspace: WorkspaceData, channel: Channel, **kwargs: Any
    ) -> WorkspaceOrchestrator:
        """Build the configured main-agent version for one run.

        Raises:
            ValueError: The configured main-agent version does not exist.
        """
        return get_main_agent(
            self.orchestrator_settings.main_agent_version,
            workspace,
            channel,
            settings=self.orchestrator_settings,
            llm_defaults=self.llm_defaults,
            workflow_runner=WorkflowRunner(
                self.engine,
                timeout_seconds=self.orchestrator_settings.workflow_request_timeout_seconds,
            ),
            tool_invoker=self.tool_invoker,
            **kwargs,
        )

    async def execute_triggered(self, workspace_id: str, payload: Any) -> dict[str, str] | None:
        """Run a workspace headlessly for an accepted trigger event."""
        workspace = self.store.get(workspace_id)
        if workspace is None:
            logger.warning(
                "Triggered workspace not found in store", extra={"workspace_id": workspace_id}
            )
            return None

        channel = EmulatedChannel(workspace_id, self.store, self.engine, self.hub)
        orchestrator = self.build_orchestrator(
            workspace,
            channel,
            trigger_payload=None if payload is None else json.dumps(payload, default=str),
        )
        return await orchestrator.run()

    async def register_trigger(self, workspace_id: str, trigger: Trigger) -> RegistrationResult:
        match trigger:
            case ScheduledTrigger():
                return await self.scheduled.register(workspace_id, trigger)
            case WebhookTrigger():
                return await self.webhooks.register(workspace_id, trigger)
            case TelegramTrigger():
                return await self.telegram.register(workspace_id, trigger)
            case _:
                assert_never(trigger)

    async def unregister_trigger(self, workspace_id: str, kind: TriggerKind) -> bool:
        if kind == "scheduled":
            return await self.scheduled.unregister(workspace_id)
        if kind == "webhook":
            return await self.webhooks.unregister(workspace_id)
        return await self.telegram.unregister(workspace_id)

    def has_triggers(self, workspace_id: str) -> bool:
        return (
            self.scheduled.is_registered(workspace_id)
            or self.webhooks.is_registered(workspace_id)
            or self.telegram.is_registered(workspace_id)
        )

    def trigger_status(self, workspace_id: str) -> dict[str, Any]:
        return {
            "workspaceId": workspace_id,
            "scheduled": self.scheduled.status(workspace_id),
            "webhook": self.webhooks.info(workspace_id),
            "telegram": self.telegram.info(workspace_id),
        }

    def queue_status(self) -> dict[str, dict[str, object]]:
        return {kind: queue.status() for kind, queue in self.queues.items()}

    async def shutdown(self) -> None:
        await self.scheduled.stop_all()
        for queue in self.queues.values():
            queue.clear()
        await self.telegram.client.aclose()
        if isinstance(self.engine, HttpWorkflowEngine):
            await self.engine.aclose()
        logger.info("Runtime shut down")


def _consume_with(
    manager: ScheduledTriggerManager | WebhookTriggerManager | TelegramTriggerManager,
) -> JobHandler:
    async def handle(job: Job) -> None:
        await manager.direct_execute(job.workspace_id, job.payload)

    return handle


def build_runtime(
    settings: ServerSettings | None = None,
    orchestrator_settings: OrchestratorSettings | None = None,
    *,
    engine: WorkflowEngine | None = None,
    llm_defaults: LLMConfig | None = None,
    tool_invoker: ToolInvoker | None = None,
    telegram_transport: httpx.AsyncBaseTransport | None = None,
) -> AppRuntime:
    settings = settings or ServerSettings()
    orchestrator_settings = orchestrator_settings or OrchestratorSettings()

    scheduled = ScheduledTriggerManager()
    webhooks = WebhookTriggerManager(settings.public_base_url)
    telegram = TelegramTriggerManager(
        settings.public_base_url,
        TelegramBotClient(
            base_url=settings.telegram_api_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
            transport=telegram_transport,
        ),
    )

    runtime = AppRuntime(
        settings=settings,
        orchestrator_settings=orchestrator_settings,
        store=WorkspaceStore(orchestrator_settings.workspaces_state_dir),
        hub=ConnectionHub(),
        prompts=PromptBroker(),
        engine=engine or HttpWorkflowEngine(
            orchestrator_settings.workflow_engine_url,
            timeout_seconds=orchestrator_settings.workflow_request_timeout_seconds,
        ),
        scheduled=scheduled,
        webhooks=webhooks,
        telegram=telegram,
        llm_defaults=llm_defaults,
        tool_invoker=tool_invoker,
    )
    runtime.queues = {
        "scheduled": DispatchQueue("scheduled", _consume_with(scheduled)),
        "webhook": DispatchQueue("webhook", _consume_with(webhooks)),
        "telegram": DispatchQueue("telegram", _consume_with(telegram)),
    }

    scheduled.set_fire_handler(runtime.queues["scheduled"].enqueue)
    for manager in (scheduled, webhooks, telegram):
        manager.set_execution_callback(runtime.execute_triggered)

    return runtime
