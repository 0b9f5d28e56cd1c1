"""Pydantic models for inbound WebSocket messages."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workspace_orchestrator.models import WorkspaceData
from workspace_orchestrator.triggers.models import Trigger, TriggerKind


class _Inbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InboundMessage(_Inbound):
    type: str = Field(min_length=1)
    data: Any = None
    id: str | None = None


class AbortRequest(_Inbound):
    run_id: str | None = None


class RegisterTriggerRequest(_Inbound):
    workspace: WorkspaceData
    trigger: Trigger


class UnregisterTriggerRequest(_Inbound):
    workspace_id: str = Field(min_length=1)
    trigger_type: TriggerKind


class ConsoleInputRequest(_Inbound):
    prompt_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
