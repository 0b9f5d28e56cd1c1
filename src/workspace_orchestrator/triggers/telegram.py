"""Telegram bot triggers.

Registering a bot verifies its token, clears any webhook previously set for
it and points the bot at ``/telegram/{workspace_id}`` with a secret token.
Inbound updates must carry that token and then pass the update-type, chat id
and chat type filters (in that order) before they are queued. Filtered
updates are routine and only logged.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, get_args

from workspace_orchestrator.triggers.models import (
    RegistrationResult,
    TelegramTrigger,
    TelegramUpdateType,
)
from workspace_orchestrator.triggers.telegram_client import TelegramApiError, TelegramBotClient

logger = logging.getLogger(__name__)

ExecutionCallback = Callable[[str, Any], Awaitable[object]]

UPDATE_TYPES: tuple[str, ...] = get_args(TelegramUpdateType)
_CHAT_CARRIERS = ("message", "edited_message", "channel_post", "edited_channel_post")

TOKEN_FORMAT_ERROR = (
    "Invalid bot token format. Expected format: 123456789:ABCdefGHIjklMNOpqrsTUVwxyz"
)


@dataclass(frozen=True, slots=True)
class TelegramRegistration:
    workspace_id: str
    trigger: TelegramTrigger
    webhook_url: str
    secret_token: str
    bot_info: dict[str, Any] = field(default_factory=dict)


def update_type(update: Mapping[str, Any]) -> str | None:
    return next((t for t in UPDATE_TYPES if update.get(t)), None)


def _chat(update: Mapping[str, Any]) -> Mapping[str, Any] | None:
    for carrier in _CHAT_CARRIERS:
        item = update.get(carrier)
        if isinstance(item, Mapping) and isinstance(item.get("chat"), Mapping):
            return item["chat"]
    callback = update.get("callback_query")
    if isinstance(callback, Mapping):
        message = callback.get("message")
        if isinstance(message, Mapping) and isinstance(message.get("chat"), Mapping):
            return message["chat"]
    return None


def chat_id(update: Mapping[str, Any]) -> str | None:
    chat = _chat(update)
    if chat is None or chat.get("id") is None:
        return None
    return str(chat["id"])


def chat_type(update: Mapping[str, Any]) -> str | None:
    chat = _chat(update)
    return None if chat is None else chat.get("type")


class TelegramTriggerManager:
    def __init__(self, base_url: str, client: TelegramBotClient) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client
        self._registrations: dict[str, TelegramRegistration] = {}
        self._execute: ExecutionCallback | None = None

    def set_execution_callback(self, callback: ExecutionCallback) -> None:
        self._execute = callback

    async def register(self, workspace_id: str, trigger: TelegramTrigger) -> RegistrationResult:
        config = trigger.config
        token = config.bot_token.strip()
        if not token or ":" not in token:
            return RegistrationResult.failed(TOKEN_FORMAT_ERROR)
        if not config.update_types:
            return RegistrationResult.failed("At least one update type must be selected")

        secret_token = (config.secret_token or "").strip() or secrets.token_hex(32)
        webhook_url = f"{self.base_url}/telegram/{workspace_id}"

        try:
            bot_info = await self.client.get_me(token)
        except TelegramApiError as e:
            return self._failed(workspace_id, e, "Bot verification failed")

        try:
            await self.client.delete_webhook(token)
        except TelegramApiError as e:
            logger.warning(
                "Webhook cleanup failed (non-critical)",
                extra={"workspace_id": workspace_id, "error": str(e)},
            )

        try:
            await self.client.set_webhook(
                token,
                url=webhook_url,
                secret_token=secret_token,
                allowed_updates=config.update_types,
            )
        except TelegramApiError as e:
            return self._failed(workspace_id, e, "Webhook registration failed")

        self._registrations[workspace_id] = TelegramRegistration(
            workspace_id=workspace_id,
            trigger=trigger,
            webhook_url=webhook_url,
            secret_token=secret_token,
            bot_info=bot_info,
        )
        logger.info(
            "Telegram bot registered",
            extra={
                "workspace_id": workspace_id,
                "bot_username": bot_info.get("username"),
                "update_types": list(config.update_types),
                "filter_chat_id": config.filter_chat_id,
                "filter_chat_type": config.filter_chat_type,
            },
        )
        return RegistrationResult(
            success=True, webhook_url=webhook_url, secret_token=secret_token, bot_info=bot_info
        )

    def _failed(self, workspace_id: str, error: TelegramApiError, step: str) -> RegistrationResult:
        logger.warning(
            "Telegram registration failed",
            extra={"workspace_id": workspace_id, "kind": error.kind, "error": str(error)},
        )
        if error.kind == "rejected":
            return RegistrationResult.failed(f"{step}: {error.description}")
        return RegistrationResult.failed(str(error))

    async def unregister(self, workspace_id: str) -> bool:
        """Remove the bot locally and delete its remote webhook.

        The local registration is removed even when Telegram cannot be reached;
        the return value says whether the remote cleanup succeeded.
        """
        registration = self._registrations.pop(workspace_id, None)
        if registration is None:
            return False
        try:
            await self.client.delete_webhook(registration.trigger.config.bot_token.strip())
        except TelegramApiError as e:
            logger.warning(
                "Failed to delete Telegram webhook",
                extra={"workspace_id": workspace_id, "kind": e.kind, "error": str(e)},
            )
            return False
        logger.info("Telegram bot unregistered", extra={"workspace_id": workspace_id})
        return True

    def validate(self, workspace_id: str, secret_token: str | None) -> TelegramRegistration | None:
        registration = self._registrations.get(workspace_id)
        if registration is None:
            logger.warning("Telegram bot not registered", extra={"workspace_id": workspace_id})
            return None
        if not registration.trigger.enabled:
            logger.warning("Telegram trigger disabled", extra={"workspace_id": workspace_id})
            return None
        if not secret_token or not hmac.compare_digest(
            secret_token.encode(), registration.secret_token.encode()
        ):
            logger.warning("Invalid Telegram secret token", extra={"workspace_id": workspace_id})
            return None
        return registration

    def filter_reason(
        self, registration: TelegramRegistration, update: Mapping[str, Any]
    ) -> str | None:
        """Why an update is filtered out, or None when it should run."""
        config = registration.trigger.config

        kind = update_type(update)
        if kind is None:
            return f"unknown update type (keys: {sorted(update)})"
        if kind not in config.update_types:
            return f'"{kind}" not in allowed types'

        if config.filter_chat_id:
            found = chat_id(update)
            if found != config.filter_chat_id:
                return f"chat ID {found} doesn't match {config.filter_chat_id}"

        if config.filter_chat_type:
            found_type = chat_type(update)
            if found_type != config.filter_chat_type:
                return f'chat type "{found_type}" doesn\'t match "{config.filter_chat_type}"'

        return None

    async def direct_execute(self, workspace_id: str, update: Any) -> bool:
        """Run the workspace for an accepted update; used by the telegram queue consumer."""
        if workspace_id not in self._registrations:
            logger.warning("No Telegram registration found", extra={"workspace_id": workspace_id})
            return False
        if self._execute is None:
            logger.warning("No execution callback set for Telegram", extra={"workspace_id": workspace_id})
            return False
        logger.info(
            "Telegram job executing",
            extra={
                "workspace_id": workspace_id,
                "update_id": update.get("update_id") if isinstance(update, Mapping) else None,
            },
        )
        await self._execute(workspace_id, update)
        return True

    def is_registered(self, workspace_id: str) -> bool:
        return workspace_id in self._registrations

    def info(self, workspace_id: str) -> dict[str, Any]:
        registration = self._registrations.get(workspace_id)
        if registration is None:
            return {"exists": False}
        config = registration.trigger.config
        return {
            "exists": True,
            "workspaceId": registration.workspace_id,
            "webhookUrl": registration.webhook_url,
            "botInfo": registration.bot_info,
            "updateTypes": list(config.update_types),
            "filters": {"chatId": config.filter_chat_id, "chatType": config.filter_chat_type},
        }

    def list(self) -> list[dict[str, Any]]:
        return [
            {
                "workspaceId": r.workspace_id,
                "botUsername": r.bot_info.get("username"),
                "webhookUrl": r.webhook_url,
                "updateTypes": list(r.trigger.config.update_types),
            }
            for r in self._registrations.values()
        ]
