"""Human-readable run transcripts written to the output directory."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from workspace_orchestrator.models import Task

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def render_transcript(
    workspace_name: str,
    generated_at: datetime,
    tasks: Sequence[Task],
    results: Mapping[str, str],
    errors: Mapping[str, str],
) -> str:
    sections = []
    for task in tasks:
        if task.id in results:
            body = results[task.id]
        elif task.id in errors:
            body = f"ERROR: {errors[task.id]}"
        else:
            body = "SKIPPED"
        sections.append(f"{task.id} ({task.title})\n{body}\n")

    return (
        f"{workspace_name} Workspace Execution Results\n"
        f"Generated: {generated_at.isoformat()}\n\n" + "\n".join(sections)
    )


@dataclass
class TranscriptWriter:
    output_dir: Path

    def _write(self, filename: str, content: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    async def write(
        self,
        workspace_name: str,
        tasks: Sequence[Task],
        results: Mapping[str, str],
        errors: Mapping[str, str],
    ) -> Path:
        """Write a transcript listing every task; returns the file path."""
        now = datetime.now(tz=UTC)
        stamp = now.isoformat().replace(":", "-").replace(".", "-")
        safe_name = _UNSAFE_NAME_CHARS.sub("_", workspace_name).strip("_") or "workspace"
        content = render_transcript(workspace_name, now, tasks, results, errors)
        return await asyncio.to_thread(self._write, f"{safe_name}_{stamp}.txt", content)
