"""Task graph linearization.

A workspace's tasks and connections form a DAG. Execution walks it in layers:
the first layer holds tasks without upstream dependencies, and every later
layer only holds tasks whose dependencies all sit in earlier layers. Within a
layer, tasks keep their declaration order so runs are deterministic.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from workspace_orchestrator.errors import ConfigurationError
from workspace_orchestrator.models import Task, TaskConnection


class TaskGraphError(ConfigurationError):
    """The task graph cannot be linearized (empty, dangling ids, or cyclic)."""


@dataclass(frozen=True, slots=True)
class LayerEntry:
    """A task scheduled in a layer, plus the upstream tasks feeding its context.

    ``upstream_ids`` follows the declaration order of the connections.
    """

    task_id: str
    upstream_ids: tuple[str, ...] = ()


def build_layers_with_context(
    tasks: Sequence[Task], connections: Sequence[TaskConnection]
) -> list[list[LayerEntry]]:
    """Linearize a task graph into execution layers.

    Raises:
        TaskGraphError: If there are no tasks, a connection names an unknown
            task, or the connections contain a cycle (self-loops included).
    """
    if not tasks:
        raise TaskGraphError("No tasks found. Your task flow needs at least one task to execute.")

    order = {task.id: index for index, task in enumerate(tasks)}
    downstream: dict[str, list[str]] = {task.id: [] for task in tasks}
    upstream: dict[str, list[str]] = {task.id: [] for task in tasks}
    indegree: dict[str, int] = {task.id: 0 for task in tasks}

    for conn in connections:
        src, dst = conn.from_task_id, conn.to_task_id
        for task_id in (src, dst):
            if task_id not in order:
                raise TaskGraphError(f"Connection references unknown task '{task_id}'")
        if src == dst:
            raise TaskGraphError(f"Cycle detected in task workflow graph: '{src}' depends on itself")
        if dst in downstream[src]:
            continue
        downstream[src].append(dst)
        upstream[dst].append(src)
        indegree[dst] += 1

    layers: list[list[LayerEntry]] = []
    current = [task.id for task in tasks if indegree[task.id] == 0]

    while current:
        layers.append([LayerEntry(task_id, tuple(upstream[task_id])) for task_id in current])

        ready: list[str] = []
        for task_id in current:
            for dependent in downstream[task_id]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    ready.append(dependent)
        current = sorted(ready, key=order.__getitem__)

    visited = sum(len(layer) for layer in layers)
    if visited != len(tasks):
        stuck = [task.id for task in tasks if indegree[task.id] > 0]
        raise TaskGraphError(f"Cycle detected in task workflow graph! Unresolved tasks: {stuck}")

    return layers


def flatten_layers(layers: Sequence[Sequence[LayerEntry]]) -> list[LayerEntry]:
    return [entry for layer in layers for entry in layer]


def get_task_execution_order(
    tasks: Sequence[Task], connections: Sequence[TaskConnection]
) -> list[str]:
    """Flat execution order of task ids."""
    return [entry.task_id for entry in flatten_layers(build_layers_with_context(tasks, connections))]


def can_execute_task(
    task_id: str,
    connections: Sequence[TaskConnection],
    completed: set[str],
) -> bool:
    """Return True when every upstream dependency of ``task_id`` has completed."""
    return all(
        conn.from_task_id in completed for conn in connections if conn.to_task_id == task_id
    )


def build_task_context(
    entry: LayerEntry, results: Mapping[str, str], separator: str = " , "
) -> str:
    """Join upstream results in declared order.

    A dependency without a result (it failed) contributes an empty string;
    the dependent still runs with whatever context is available.
    """
    return separator.join(results.get(upstream_id, "") for upstream_id in entry.upstream_ids)


def missing_dependencies(entry: LayerEntry, results: Mapping[str, str]) -> list[str]:
    return [upstream_id for upstream_id in entry.upstream_ids if upstream_id not in results]
