"""Inbound webhook triggers guarded by a shared secret."""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from workspace_orchestrator.triggers.models import RegistrationResult, WebhookTrigger

logger = logging.getLogger(__name__)

ExecutionCallback = Callable[[str, Any], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class WebhookRegistration:
    workspace_id: str
    trigger: WebhookTrigger
    webhook_url: str
    secret: str


class WebhookTriggerManager:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")
        self._registrations: dict[str, WebhookRegistration] = {}
        self._execute: ExecutionCallback | None = None

    def set_execution_callback(self, callback: ExecutionCallback) -> None:
        self._execute = callback

    async def register(self, workspace_id: str, trigger: WebhookTrigger) -> RegistrationResult:
        secret = (trigger.config.secret or "").strip() or secrets.token_hex(32)
        webhook_url = f"{self.base_url}/webhook/{workspace_id}"

        self._registrations[workspace_id] = WebhookRegistration(
            workspace_id=workspace_id,
            trigger=trigger,
            webhook_url=webhook_url,
            secret=secret,
        )
        logger.info(
            "Webhook registered",
            extra={"workspace_id": workspace_id, "webhook_url": webhook_url, "secret_prefix": secret[:8]},
        )
        return RegistrationResult(success=True, webhook_url=webhook_url, secret=secret)

    async def unregister(self, workspace_id: str) -> bool:
        existed = self._registrations.pop(workspace_id, None) is not None
        if existed:
            logger.info("Webhook unregistered", extra={"workspace_id": workspace_id})
        return existed

    def validate(self, workspace_id: str, secret: str | None) -> WebhookRegistration | None:
        """Return the registration if ``secret`` matches, else None.

        A missing secret is rejected like a wrong one.
        """
        registration = self._registrations.get(workspace_id)
        if registration is None:
            logger.warning("Webhook not found", extra={"workspace_id": workspace_id})
            return None
        if not registration.trigger.enabled:
            logger.warning("Webhook trigger disabled", extra={"workspace_id": workspace_id})
            return None
        if not secret or not hmac.compare_digest(secret.encode(), registration.secret.encode()):
            logger.warning("Invalid webhook secret", extra={"workspace_id": workspace_id})
            return None
        return registration

    async def direct_execute(self, workspace_id: str, payload: Any) -> bool:
        """Run the workspace for an accepted request; used by the webhook queue consumer."""
        if self._execute is None:
            logger.warning(
                "No execution callback set for webhook", extra={"workspace_id": workspace_id}
            )
            return False
        logger.info("Webhook job executing", extra={"workspace_id": workspace_id})
        await self._execute(workspace_id, payload)
        return True

    def is_registered(self, workspace_id: str) -> bool:
        return workspace_id in self._registrations

    def info(self, workspace_id: str) -> dict[str, Any]:
        registration = self._registrations.get(workspace_id)
        if registration is None:
            return {"exists": False}
        return {
            "exists": True,
            "workspaceId": registration.workspace_id,
            "webhookUrl": registration.webhook_url,
            "method": registration.trigger.config.method,
            "enabled": registration.trigger.enabled,
        }

    def list(self) -> list[dict[str, Any]]:
        return [
            {"workspaceId": r.workspace_id, "webhookUrl": r.webhook_url}
            for r in self._registrations.values()
        ]
