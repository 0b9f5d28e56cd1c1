"""Minimal async client for the Telegram Bot API methods the triggers need."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Literal

import httpx

from workspace_orchestrator.errors import CollaboratorError

logger = logging.getLogger(__name__)

TelegramErrorKind = Literal["timeout", "rejected", "unreachable"]


class TelegramApiError(CollaboratorError):
    """A Bot API call failed.

    ``kind`` tells a timeout, a rejection by Telegram and an unreachable API
    apart; ``description`` holds Telegram's own explanation for rejections.
    """

    def __init__(self, kind: TelegramErrorKind, message: str, description: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.description = description


class TelegramBotClient:
    def __init__(
        self,
        *,
        base_url: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(self, token: str, method: str, payload: dict[str, Any] | None = None) -> Any:
        client = await self._ensure_client()
        url = f"{self.base_url}/bot{token}/{method}"
        try:
            if payload is None:
                response = await client.get(url)
            else:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise TelegramApiError(
                "timeout", "Telegram API request timed out. Please try again."
            ) from e
        except httpx.HTTPError as e:
            raise TelegramApiError(
                "unreachable", "Cannot reach Telegram API. Check your internet connection."
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("ok"):
            description = str(body.get("description") or response.reason_phrase)
            logger.debug(
                "Telegram API rejected call",
                extra={"method": method, "status_code": response.status_code},
            )
            raise TelegramApiError("rejected", f"Telegram API error: {description}", description)
        return body.get("result")

    async def get_me(self, token: str) -> dict[str, Any]:
        result = await self._call(token, "getMe")
        return result if isinstance(result, dict) else {}

    async def delete_webhook(self, token: str, *, drop_pending_updates: bool = True) -> None:
        await self._call(token, "deleteWebhook", {"drop_pending_updates": drop_pending_updates})

    async def set_webhook(
        self,
        token: str,
        *,
        url: str,
        secret_token: str,
        allowed_updates: Sequence[str],
        max_connections: int = 40,
    ) -> None:
        await self._call(
            token,
            "setWebhook",
            {
                "url": url,
                "secret_token": secret_token,
                "allowed_updates": list(allowed_updates),
                "max_connections": max_connections,
                "drop_pending_updates": False,
            },
        )
