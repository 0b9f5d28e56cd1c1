"""Unit tests for structured JSON logging."""

from __future__ import annotations

import json
import logging

from workspace_orchestrator.orchestrator.logging import JsonFormatter, run_logging_context


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("workspace_orchestrator.test", logging.INFO, __file__, 1, "Task failed", (), None)
    record.__dict__.update(extra)
    return record


def test_extra_fields_are_nested_under_extra() -> None:
    payload = json.loads(JsonFormatter().format(_record(task_id="A")))

    assert payload["message"] == "Task failed"
    assert payload["level"] == "INFO"
    assert payload["extra"] == {"task_id": "A"}


def test_records_inside_a_run_carry_the_run_id() -> None:
    formatter = JsonFormatter()

    with run_logging_context("run-7"):
        inside = json.loads(formatter.format(_record()))
    outside = json.loads(formatter.format(_record()))

    assert inside["extra"] == {"run_id": "run-7"}
    assert "extra" not in outside
