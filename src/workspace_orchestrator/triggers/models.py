"""Trigger configuration as authored in a workspace, and registration results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TriggerKind = Literal["scheduled", "webhook", "telegram"]

TelegramUpdateType = Literal[
    "message",
    "edited_message",
    "channel_post",
    "edited_channel_post",
    "inline_query",
    "callback_query",
    "poll",
    "poll_answer",
    "pre_checkout_query",
    "shipping_query",
]

TelegramChatType = Literal["private", "group", "supergroup", "channel"]


class _TriggerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ScheduledTriggerConfig(_TriggerModel):
    cron_expression: str
    timezone: str = "UTC"
    description: str | None = None


class WebhookTriggerConfig(_TriggerModel):
    secret: str | None = None
    method: Literal["POST", "GET"] = "POST"


class TelegramTriggerConfig(_TriggerModel):
    bot_token: str
    update_types: list[TelegramUpdateType] = Field(default_factory=lambda: ["message"])
    secret_token: str | None = None
    filter_chat_id: str | None = None
    filter_chat_type: TelegramChatType | None = None

    @field_validator("filter_chat_id", mode="before")
    @classmethod
    def _chat_id_as_text(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ScheduledTrigger(_TriggerModel):
    type: Literal["scheduled"] = "scheduled"
    id: str = ""
    enabled: bool = True
    config: ScheduledTriggerConfig


class WebhookTrigger(_TriggerModel):
    type: Literal["webhook"] = "webhook"
    id: str = ""
    enabled: bool = True
    config: WebhookTriggerConfig = Field(default_factory=WebhookTriggerConfig)


class TelegramTrigger(_TriggerModel):
    type: Literal["telegram"] = "telegram"
    id: str = ""
    enabled: bool = True
    config: TelegramTriggerConfig


Trigger = Annotated[
    ScheduledTrigger | WebhookTrigger | TelegramTrigger, Field(discriminator="type")
]


class RegistrationResult(_TriggerModel):
    """Outcome of a register call. Failures carry ``error`` and nothing else."""

    success: bool
    error: str | None = None

    next_execution_time: int | None = None
    cron_expression: str | None = None
    timezone: str | None = None

    webhook_url: str | None = None
    secret: str | None = None
    secret_token: str | None = None
    bot_info: dict[str, Any] | None = None

    @classmethod
    def failed(cls, error: str) -> RegistrationResult:
        return cls(success=False, error=error)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True, slots=True)
class Job:
    """An accepted inbound event waiting to run its workspace."""

    workspace_id: str
    payload: Any = None
    received_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
