from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RunState(str, Enum):
    INITIALIZING = "initializing"
    ASSIGNING = "assigning"
    DISPATCHING = "dispatching"
    COLLECTING = "collecting"
    FINALIZING = "finalizing"
    DONE = "done"


ALLOWED_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.INITIALIZING: {RunState.ASSIGNING, RunState.DISPATCHING, RunState.FINALIZING},
    RunState.ASSIGNING: {RunState.DISPATCHING},
    RunState.DISPATCHING: {RunState.COLLECTING},
    RunState.COLLECTING: {RunState.ASSIGNING, RunState.DISPATCHING, RunState.FINALIZING},
    RunState.FINALIZING: {RunState.DONE},
    RunState.DONE: set(),
}


class IllegalTransitionError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Where a run currently is: its state and the task it is working on."""

    state: RunState
    task_id: str | None = None
    layer_index: int | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"state": self.state.value}
        if self.task_id is not None:
            out["taskId"] = self.task_id
        if self.layer_index is not None:
            out["layerIndex"] = self.layer_index
        return out


def transition(
    *,
    current: RunSnapshot,
    to: RunState,
    task_id: str | None = None,
    layer_index: int | None = None,
) -> RunSnapshot:
    allowed = ALLOWED_TRANSITIONS.get(current.state, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.state.value} -> {to.value}")
    return RunSnapshot(
        state=to,
        task_id=task_id if task_id is not None else current.task_id,
        layer_index=layer_index if layer_index is not None else current.layer_index,
    )
