"""Unit tests for task graph linearization."""

from __future__ import annotations

import random

import pytest

from workspace_orchestrator.models import Task, TaskConnection
from workspace_orchestrator.tasks.graph import (
    LayerEntry,
    TaskGraphError,
    build_layers_with_context,
    build_task_context,
    can_execute_task,
    get_task_execution_order,
    missing_dependencies,
)


def _tasks(*ids: str) -> list[Task]:
    return [Task(id=i, title=i.upper()) for i in ids]


def _conn(src: str, dst: str) -> TaskConnection:
    return TaskConnection(from_task_id=src, to_task_id=dst)


def test_linear_chain_produces_one_task_per_layer() -> None:
    layers = build_layers_with_context(_tasks("A", "B", "C"), [_conn("A", "B"), _conn("B", "C")])

    assert layers == [
        [LayerEntry("A")],
        [LayerEntry("B", ("A",))],
        [LayerEntry("C", ("B",))],
    ]


def test_diamond_keeps_declaration_order_within_layers() -> None:
    tasks = _tasks("A", "C", "B", "D")
    connections = [_conn("A", "B"), _conn("A", "C"), _conn("B", "D"), _conn("C", "D")]

    layers = build_layers_with_context(tasks, connections)

    assert [[e.task_id for e in layer] for layer in layers] == [["A"], ["C", "B"], ["D"]]
    assert layers[2][0].upstream_ids == ("B", "C")


def test_independent_tasks_share_the_first_layer() -> None:
    layers = build_layers_with_context(_tasks("A", "B"), [])

    assert [[e.task_id for e in layer] for layer in layers] == [["A", "B"]]


def test_duplicate_connections_are_ignored() -> None:
    layers = build_layers_with_context(_tasks("A", "B"), [_conn("A", "B"), _conn("A", "B")])

    assert layers[1] == [LayerEntry("B", ("A",))]


def test_empty_workspace_is_rejected() -> None:
    with pytest.raises(TaskGraphError, match="No tasks found"):
        build_layers_with_context([], [])


def test_cycle_is_rejected() -> None:
    with pytest.raises(TaskGraphError, match="Cycle detected"):
        build_layers_with_context(_tasks("A", "B"), [_conn("A", "B"), _conn("B", "A")])


def test_self_loop_is_rejected() -> None:
    with pytest.raises(TaskGraphError, match="depends on itself"):
        build_layers_with_context(_tasks("A"), [_conn("A", "A")])


def test_unknown_task_in_connection_is_rejected() -> None:
    with pytest.raises(TaskGraphError, match="unknown task 'Z'"):
        build_layers_with_context(_tasks("A"), [_conn("A", "Z")])


def test_flat_execution_order() -> None:
    order = get_task_execution_order(_tasks("C", "B", "A"), [_conn("A", "B")])

    assert order == ["C", "A", "B"]


def test_context_joins_upstream_results_in_declared_order() -> None:
    entry = LayerEntry("D", ("B", "C"))

    assert build_task_context(entry, {"B": "beta", "C": "gamma"}) == "beta , gamma"
    assert build_task_context(entry, {"C": "gamma"}, separator="|") == "|gamma"
    assert missing_dependencies(entry, {"C": "gamma"}) == ["B"]


def test_can_execute_task_checks_all_dependencies() -> None:
    connections = [_conn("A", "C"), _conn("B", "C")]

    assert can_execute_task("C", connections, {"A"}) is False
    assert can_execute_task("C", connections, {"A", "B"}) is True
    assert can_execute_task("A", connections, set()) is True


@pytest.mark.parametrize("seed", range(25))
def test_random_acyclic_graphs_respect_every_edge(seed: int) -> None:
    rng = random.Random(seed)
    ranked = [f"T{i}" for i in range(rng.randint(1, 12))]
    # Edges only go from a lower to a higher rank, so the graph is acyclic.
    connections = [
        _conn(src, dst)
        for i, src in enumerate(ranked)
        for dst in ranked[i + 1 :]
        if rng.random() < 0.3
    ]
    declared = ranked[:]
    rng.shuffle(declared)
    rng.shuffle(connections)

    layers = build_layers_with_context(_tasks(*declared), connections)

    layer_of = {entry.task_id: index for index, layer in enumerate(layers) for entry in layer}
    visited = [entry.task_id for layer in layers for entry in layer]
    assert sorted(visited) == sorted(ranked)
    assert len(visited) == len(set(visited))
    for connection in connections:
        assert layer_of[connection.from_task_id] < layer_of[connection.to_task_id]
    assert get_task_execution_order(_tasks(*declared), connections) == visited
