"""Cron-driven triggers.

Each registered workspace gets one asyncio timer task that sleeps until the
next cron occurrence in the trigger's timezone and then hands a job to the
scheduled dispatch queue. Scheduled firings are internal and need no
credential check.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadDateError, croniter

from workspace_orchestrator.triggers.models import Job, RegistrationResult, ScheduledTrigger

logger = logging.getLogger(__name__)

FireHandler = Callable[[Job], None]
ExecutionCallback = Callable[[str, Any], Awaitable[object]]


def next_fire_time(cron_expression: str, zone: ZoneInfo, after: datetime) -> datetime:
    return croniter(cron_expression, after.astimezone(zone)).get_next(datetime)


@dataclass
class ScheduledRegistration:
    workspace_id: str
    trigger: ScheduledTrigger
    zone: ZoneInfo
    timer: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.timer is not None and not self.timer.done()


class ScheduledTriggerManager:
    def __init__(self, *, on_fire: FireHandler | None = None) -> None:
        self._registrations: dict[str, ScheduledRegistration] = {}
        self._on_fire = on_fire
        self._execute: ExecutionCallback | None = None

    def set_fire_handler(self, handler: FireHandler) -> None:
        self._on_fire = handler

    def set_execution_callback(self, callback: ExecutionCallback) -> None:
        self._execute = callback

    async def register(self, workspace_id: str, trigger: ScheduledTrigger) -> RegistrationResult:
        """Register (or replace) the schedule of a workspace and start it if enabled."""
        await self.unregister(workspace_id)

        expression = trigger.config.cron_expression.strip()
        timezone = trigger.config.timezone or "UTC"
        try:
            zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return RegistrationResult.failed(f"Unknown timezone: {timezone}")
        if not croniter.is_valid(expression):
            return RegistrationResult.failed(f"Invalid cron expression: {expression}")
        try:
            next_fire_time(expression, zone, datetime.now(tz=zone))
        except CroniterBadDateError:
            return RegistrationResult.failed(f"Cron expression never fires: {expression}")

        registration = ScheduledRegistration(workspace_id=workspace_id, trigger=trigger, zone=zone)
        self._registrations[workspace_id] = registration
        if trigger.enabled:
            registration.timer = asyncio.create_task(
                self._run_timer(registration), name=f"scheduled-trigger-{workspace_id}"
            )

        next_time = self.next_execution_time(workspace_id)
        logger.info(
            "Scheduled trigger registered",
            extra={
                "workspace_id": workspace_id,
                "cron_expression": expression,
                "timezone": timezone,
                "enabled": trigger.enabled,
                "next_execution_time": next_time,
            },
        )
        return RegistrationResult(
            success=True,
            next_execution_time=next_time,
            cron_expression=expression,
            timezone=timezone,
        )

    async def unregister(self, workspace_id: str) -> bool:
        registration = self._registrations.pop(workspace_id, None)
        if registration is None:
            return False
        await self._stop(registration)
        logger.info("Scheduled trigger unregistered", extra={"workspace_id": workspace_id})
        return True

    async def _stop(self, registration: ScheduledRegistration) -> None:
        timer = registration.timer
        registration.timer = None
        if timer is None or timer.done():
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer

    async def _run_timer(self, registration: ScheduledRegistration) -> None:
        expression = registration.trigger.config.cron_expression.strip()
        base = datetime.now(tz=registration.zone)
        while True:
            try:
                fire_at = next_fire_time(expression, registration.zone, base)
            except CroniterBadDateError:
                logger.warning(
                    "Scheduled trigger has no further occurrences",
                    extra={"workspace_id": registration.workspace_id, "cron_expression": expression},
                )
                return
            delay = (fire_at - datetime.now(tz=registration.zone)).total_seconds()
            await asyncio.sleep(max(0.0, delay))
            self._fire(registration.workspace_id, fire_at)
            # Never schedule the same occurrence twice if the sleep woke up early.
            base = max(fire_at, datetime.now(tz=registration.zone))

    def _fire(self, workspace_id: str, fired_at: datetime) -> None:
        logger.info(
            "Scheduled trigger fired",
            extra={"workspace_id": workspace_id, "fired_at": fired_at.isoformat()},
        )
        if self._on_fire is None:
            logger.warning("No fire handler set for scheduled trigger", extra={"workspace_id": workspace_id})
            return
        self._on_fire(
            Job(workspace_id, {"trigger": "scheduled", "firedAt": fired_at.isoformat()})
        )

    async def direct_execute(self, workspace_id: str, payload: Any = None) -> bool:
        """Run the workspace; used by the scheduled queue consumer."""
        if self._execute is None:
            logger.warning(
                "No execution callback set for scheduled trigger",
                extra={"workspace_id": workspace_id},
            )
            return False
        await self._execute(workspace_id, payload)
        return True

    def next_execution_time(self, workspace_id: str) -> int | None:
        """Next firing as milliseconds since the epoch, or None when inactive."""
        registration = self._registrations.get(workspace_id)
        if registration is None or not registration.active:
            return None
        try:
            fire_at = next_fire_time(
                registration.trigger.config.cron_expression.strip(),
                registration.zone,
                datetime.now(tz=registration.zone),
            )
        except CroniterBadDateError:
            return None
        return int(fire_at.timestamp() * 1000)

    def is_registered(self, workspace_id: str) -> bool:
        return workspace_id in self._registrations

    def status(self, workspace_id: str) -> dict[str, Any]:
        registration = self._registrations.get(workspace_id)
        if registration is None:
            return {"active": False, "nextExecutionTime": None, "trigger": None}
        return {
            "active": registration.active,
            "nextExecutionTime": self.next_execution_time(workspace_id),
            "trigger": registration.trigger.model_dump(mode="json", by_alias=True),
        }

    def list(self) -> list[dict[str, Any]]:
        return [
            {"workspaceId": workspace_id, **self.status(workspace_id)}
            for workspace_id in self._registrations
        ]

    async def stop_all(self) -> None:
        registrations = list(self._registrations.values())
        self._registrations.clear()
        for registration in registrations:
            await self._stop(registration)
        if registrations:
            logger.info("Stopped all scheduled triggers", extra={"count": len(registrations)})
