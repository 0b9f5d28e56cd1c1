"""Headless run triggers: schedules, webhooks and Telegram bots."""

from workspace_orchestrator.triggers.models import Job, RegistrationResult, Trigger
from workspace_orchestrator.triggers.queue import DispatchQueue
from workspace_orchestrator.triggers.scheduled import ScheduledTriggerManager
from workspace_orchestrator.triggers.telegram import TelegramTriggerManager
from workspace_orchestrator.triggers.telegram_client import TelegramApiError, TelegramBotClient
from workspace_orchestrator.triggers.webhook import WebhookTriggerManager

__all__ = [
    "DispatchQueue",
    "Job",
    "RegistrationResult",
    "ScheduledTriggerManager",
    "TelegramApiError",
    "TelegramBotClient",
    "TelegramTriggerManager",
    "Trigger",
    "WebhookTriggerManager",
]
