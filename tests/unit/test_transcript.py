"""Unit tests for run transcripts."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from workspace_orchestrator.models import Task
from workspace_orchestrator.orchestrator.transcript import TranscriptWriter, render_transcript

TASKS = [Task(id="A", title="Fetch"), Task(id="B", title="Summarise"), Task(id="C", title="Post")]


def test_transcript_lists_results_errors_and_skipped_tasks() -> None:
    text = render_transcript(
        "Daily News",
        datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        TASKS,
        {"A": "page"},
        {"B": "model timed out"},
    )

    assert text == (
        "Daily News Workspace Execution Results\n"
        "Generated: 2024-05-01T12:00:00+00:00\n\n"
        "A (Fetch)\npage\n\n"
        "B (Summarise)\nERROR: model timed out\n\n"
        "C (Post)\nSKIPPED\n"
    )


async def test_writer_sanitizes_the_file_name(tmp_path: Path) -> None:
    path = await TranscriptWriter(tmp_path / "out").write("Daily News/EU", TASKS, {}, {})

    assert path.parent == tmp_path / "out"
    assert path.name.startswith("Daily_News_EU_")
    assert path.suffix == ".txt"
