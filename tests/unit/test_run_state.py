"""Unit tests for the run state machine."""

from __future__ import annotations

import pytest

from workspace_orchestrator.orchestrator.run_state import (
    IllegalTransitionError,
    RunSnapshot,
    RunState,
    transition,
)


def test_agentic_task_path() -> None:
    snap = RunSnapshot(state=RunState.INITIALIZING)

    snap = transition(current=snap, to=RunState.ASSIGNING, task_id="B", layer_index=1)
    snap = transition(current=snap, to=RunState.DISPATCHING)
    snap = transition(current=snap, to=RunState.COLLECTING)
    snap = transition(current=snap, to=RunState.FINALIZING)
    snap = transition(current=snap, to=RunState.DONE)

    assert snap.state is RunState.DONE
    assert snap.task_id == "B"
    assert snap.to_json() == {"state": "done", "taskId": "B", "layerIndex": 1}


def test_static_task_skips_assignment() -> None:
    snap = transition(current=RunSnapshot(state=RunState.INITIALIZING), to=RunState.DISPATCHING, task_id="A")

    assert snap.state is RunState.DISPATCHING


def test_empty_run_can_finalize_immediately() -> None:
    snap = transition(current=RunSnapshot(state=RunState.INITIALIZING), to=RunState.FINALIZING)

    assert snap.to_json() == {"state": "finalizing"}


@pytest.mark.parametrize(
    ("current", "to"),
    [
        (RunState.DISPATCHING, RunState.ASSIGNING),
        (RunState.ASSIGNING, RunState.COLLECTING),
        (RunState.FINALIZING, RunState.DISPATCHING),
        (RunState.DONE, RunState.INITIALIZING),
    ],
)
def test_illegal_transitions_raise(current: RunState, to: RunState) -> None:
    with pytest.raises(IllegalTransitionError, match=f"{current.value} -> {to.value}"):
        transition(current=RunSnapshot(state=current), to=to)
