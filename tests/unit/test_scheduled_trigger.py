"""Unit tests for cron-driven triggers."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from workspace_orchestrator.triggers import scheduled
from workspace_orchestrator.triggers.models import Job, ScheduledTrigger
from workspace_orchestrator.triggers.scheduled import ScheduledTriggerManager, next_fire_time


def _trigger(cron: str = "0 9 * * *", timezone: str = "UTC", enabled: bool = True) -> ScheduledTrigger:
    return ScheduledTrigger.model_validate(
        {"enabled": enabled, "config": {"cronExpression": cron, "timezone": timezone}}
    )


def test_next_fire_time_respects_the_timezone() -> None:
    after = datetime(2024, 1, 15, 7, 0, tzinfo=UTC)

    fire_at = next_fire_time("0 9 * * *", ZoneInfo("Europe/Berlin"), after)

    assert fire_at.astimezone(UTC) == datetime(2024, 1, 15, 8, 0, tzinfo=UTC)


async def test_register_reports_next_execution_time() -> None:
    manager = ScheduledTriggerManager()

    result = await manager.register("ws-1", _trigger())
    try:
        assert result.success is True
        assert result.cron_expression == "0 9 * * *"
        assert result.timezone == "UTC"
        now_ms = datetime.now(tz=UTC).timestamp() * 1000
        assert now_ms < (result.next_execution_time or 0) <= now_ms + 24 * 3600 * 1000
        assert manager.status("ws-1")["active"] is True
    finally:
        await manager.stop_all()


@pytest.mark.parametrize(
    ("trigger", "error"),
    [
        (_trigger(cron="not a cron"), "Invalid cron expression: not a cron"),
        (_trigger(timezone="Mars/Olympus"), "Unknown timezone: Mars/Olympus"),
        (_trigger(cron="0 0 30 2 *"), "Cron expression never fires: 0 0 30 2 *"),
    ],
)
async def test_invalid_configuration_is_rejected(trigger: ScheduledTrigger, error: str) -> None:
    manager = ScheduledTriggerManager()

    result = await manager.register("ws-1", trigger)

    assert result.to_wire() == {"success": False, "error": error}
    assert manager.is_registered("ws-1") is False
    assert manager.list() == []


async def test_disabled_trigger_is_registered_but_inactive() -> None:
    manager = ScheduledTriggerManager()

    result = await manager.register("ws-1", _trigger(enabled=False))

    assert result.success is True
    assert result.next_execution_time is None
    assert manager.status("ws-1")["active"] is False


async def test_reregistering_replaces_the_timer() -> None:
    manager = ScheduledTriggerManager()
    await manager.register("ws-1", _trigger("0 9 * * *"))
    await manager.register("ws-1", _trigger("30 18 * * *"))
    try:
        assert len(manager.list()) == 1
        assert manager.status("ws-1")["trigger"]["config"]["cronExpression"] == "30 18 * * *"
    finally:
        await manager.stop_all()

    assert manager.is_registered("ws-1") is False


async def test_timer_hands_jobs_to_the_fire_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        scheduled, "next_fire_time", lambda cron, zone, after: after + timedelta(milliseconds=10)
    )
    fired: list[Job] = []
    first = asyncio.Event()

    def on_fire(job: Job) -> None:
        fired.append(job)
        first.set()

    manager = ScheduledTriggerManager(on_fire=on_fire)
    await manager.register("ws-1", _trigger())
    try:
        await asyncio.wait_for(first.wait(), timeout=1)
    finally:
        await manager.stop_all()

    assert fired[0].workspace_id == "ws-1"
    assert fired[0].payload["trigger"] == "scheduled"
    assert "firedAt" in fired[0].payload
