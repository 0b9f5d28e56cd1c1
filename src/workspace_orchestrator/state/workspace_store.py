"""Workspace definitions cached for headless runs.

Trigger registration stores the workspace here so that a later firing (and
the emulated channel resolving workflow bodies by id) can find it. Entries
are kept in memory and mirrored to one JSON file per workspace under the
state directory so they survive restarts (best-effort).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from workspace_orchestrator.models import Workflow, WorkspaceData

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class WorkspaceStore:
    path: Path
    _cache: dict[str, WorkspaceData] = field(default_factory=dict, init=False, repr=False)

    def _file_for(self, workspace_id: str) -> Path:
        return self.path / f"{_UNSAFE_FILENAME_CHARS.sub('_', workspace_id)}.json"

    def _load(self, workspace_id: str) -> WorkspaceData | None:
        file = self._file_for(workspace_id)
        if not file.exists():
            return None
        try:
            raw = json.loads(file.read_text(encoding="utf-8"))
            return WorkspaceData.model_validate(raw)
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Ignoring unreadable workspace file", extra={"path": str(file)})
            return None

    def put(self, workspace: WorkspaceData) -> None:
        self._cache[workspace.id] = workspace
        self.path.mkdir(parents=True, exist_ok=True)
        payload = workspace.model_dump(mode="json", by_alias=True)
        self._file_for(workspace.id).write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def get(self, workspace_id: str) -> WorkspaceData | None:
        cached = self._cache.get(workspace_id)
        if cached is not None:
            return cached
        loaded = self._load(workspace_id)
        if loaded is not None:
            self._cache[workspace_id] = loaded
        return loaded

    def remove(self, workspace_id: str) -> bool:
        removed = self._cache.pop(workspace_id, None) is not None
        file = self._file_for(workspace_id)
        if file.exists():
            file.unlink()
            removed = True
        return removed

    def get_workflow(self, workspace_id: str, workflow_id: str) -> Workflow | None:
        workspace = self.get(workspace_id)
        if workspace is None:
            return None
        return workspace.get_workflow(workflow_id)

    def ids(self) -> list[str]:
        known = set(self._cache)
        if self.path.exists():
            known.update(p.stem for p in self.path.glob("*.json"))
        return sorted(known)
