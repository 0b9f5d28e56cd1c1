"""Task graph linearization, executor assignment and LLM task planning."""

from workspace_orchestrator.tasks.graph import (
    LayerEntry,
    TaskGraphError,
    build_layers_with_context,
    build_task_context,
    get_task_execution_order,
)

__all__ = [
    "LayerEntry",
    "TaskGraphError",
    "build_layers_with_context",
    "build_task_context",
    "get_task_execution_order",
]
