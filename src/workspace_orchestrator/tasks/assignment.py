"""Executor resolution for tasks.

Statically bound tasks (workflow, specific-agent, mcp) name their executor.
Agentic tasks ask the main LLM to pick the best fit from the workspace
catalog. Either way the result is one member of a closed executor union that
the orchestrator dispatches with an exhaustive match.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from workspace_orchestrator.errors import CollaboratorError, ConfigurationError
from workspace_orchestrator.llm.parsing import parse_json_object
from workspace_orchestrator.llm.provider import LLMProvider
from workspace_orchestrator.models import Agent, Task, TaskType, Workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkflowTarget:
    workflow_id: str


@dataclass(frozen=True, slots=True)
class AgentTarget:
    agent_id: str


@dataclass(frozen=True, slots=True)
class ToolTarget:
    tool_id: str


ExecutorTarget = WorkflowTarget | AgentTarget | ToolTarget

AssignmentKind = Literal["workflow", "agent", "mcp"]


class AssignmentError(CollaboratorError):
    """The LLM did not return a usable executor assignment."""


@dataclass(frozen=True, slots=True)
class Assignment:
    """Advisory routing decision returned by the LLM."""

    type: AssignmentKind
    id: str
    confidence: float
    reasoning: str

    def to_executor(self) -> ExecutorTarget:
        if self.type == "workflow":
            return WorkflowTarget(self.id)
        if self.type == "agent":
            return AgentTarget(self.id)
        return ToolTarget(self.id)


def static_executor(task: Task) -> ExecutorTarget | None:
    """Executor for statically bound tasks; ``None`` for agentic tasks.

    Raises:
        ConfigurationError: A statically bound task has no executor id.
    """
    if task.type is TaskType.AGENTIC:
        return None

    executor_id = (task.executor_id or "").strip()
    if not executor_id:
        raise ConfigurationError(
            f"Task '{task.title}' is of type '{task.type.value}' but has no executor assigned"
        )
    if task.type is TaskType.WORKFLOW:
        return WorkflowTarget(executor_id)
    if task.type is TaskType.SPECIFIC_AGENT:
        return AgentTarget(executor_id)
    return ToolTarget(executor_id)


def build_assignment_prompt(
    task: Task,
    workflows: Sequence[Workflow],
    agents: Sequence[Agent],
    tools: Sequence[str],
) -> str:
    workflow_lines = "\n".join(
        f"- ID: {w.id}\n  Name: {w.name}\n  Description: {w.description}" for w in workflows
    )
    agent_lines = "\n".join(
        f"- ID: {a.id}\n  Name: {a.name}\n  Role: {a.role}\n  Objective: {a.objective}\n"
        f"  Background: {a.background}\n  Capabilities: {a.capabilities}\n"
        f"  Tools: {', '.join(t.name for t in a.tools)}"
        for a in agents
    )
    tool_lines = "\n".join(f"- {tool}" for tool in tools)

    return f"""You are an intelligent task assignment system. Analyze the task and pick the best executor (workflow, agent, or MCP tool) to accomplish it.

TASK TO ANALYZE:
Title: {task.title}
Description: {task.description}
Expected Output: {task.expected_output}

WORKFLOWS ({len(workflows)} available):
{workflow_lines}

AGENTS ({len(agents)} available):
{agent_lines}

MCP TOOLS ({len(tools)} available):
{tool_lines}

DECISION CRITERIA:
1. Task Complexity: Simple tasks -> MCP tools, Medium -> Workflows, Complex -> Agents
2. Domain Match: choose the executor whose capabilities best match the task domain
3. Output Requirements: the executor must be able to produce the expected output
4. Efficiency: prefer simpler solutions when they can accomplish the task

Respond with a JSON object only:
{{
  "type": "workflow" | "agent" | "mcp",
  "id": "exact_id_from_available_options",
  "confidence": number_between_0_and_1,
  "reasoning": "why this executor is the best choice"
}}

The "id" must exactly match one of the IDs listed above."""


def _catalog_contains(
    kind: str,
    executor_id: str,
    workflows: Sequence[Workflow],
    agents: Sequence[Agent],
    tools: Sequence[str],
) -> bool:
    if kind == "workflow":
        return any(w.id == executor_id for w in workflows)
    if kind == "agent":
        return any(a.id == executor_id for a in agents)
    if kind == "mcp":
        return executor_id in tools
    return False


async def assign_best_fit(
    llm: LLMProvider,
    task: Task,
    workflows: Sequence[Workflow],
    agents: Sequence[Agent],
    tools: Sequence[str] = (),
    *,
    min_confidence: float = 0.5,
) -> Assignment:
    """Ask the LLM which executor should run an agentic task.

    Raises:
        AssignmentError: The reply is not valid JSON, is missing fields, or
            names an executor that is not in the catalog.
    """
    if not workflows and not agents and not tools:
        raise AssignmentError(f"No executors available for task '{task.title}'")

    raw = await llm.agenerate(build_assignment_prompt(task, workflows, agents, tools))
    try:
        reply = parse_json_object(raw, what="executor assignment")
    except CollaboratorError as e:
        raise AssignmentError(str(e)) from e

    kind = reply.get("type")
    executor_id = reply.get("id")
    confidence = reply.get("confidence")
    reasoning = reply.get("reasoning")
    if (
        kind not in ("workflow", "agent", "mcp")
        or not isinstance(executor_id, str)
        or not executor_id
        or isinstance(confidence, bool)
        or not isinstance(confidence, int | float)
        or not reasoning
    ):
        raise AssignmentError(f"Invalid assignment structure from LLM: {reply}")

    if not _catalog_contains(kind, executor_id, workflows, agents, tools):
        raise AssignmentError(f"Invalid executor ID: {executor_id} for type: {kind}")

    assignment = Assignment(
        type=kind,
        id=executor_id,
        confidence=max(0.0, min(1.0, float(confidence))),
        reasoning=str(reasoning),
    )
    if assignment.confidence < min_confidence:
        logger.warning(
            "Low-confidence executor assignment",
            extra={
                "task_id": task.id,
                "executor_type": assignment.type,
                "executor_id": assignment.id,
                "confidence": assignment.confidence,
            },
        )
    return assignment
