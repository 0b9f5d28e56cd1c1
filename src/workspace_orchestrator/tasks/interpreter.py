"""LLM-backed analysis and planning of agent tasks.

Each helper sends one prompt and parses the reply as strict JSON. A reply
that does not parse or does not match the expected shape raises
:class:`LLMResponseParseError`; callers treat it as a task failure.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from workspace_orchestrator.errors import LLMResponseParseError
from workspace_orchestrator.llm.parsing import parse_json_array, parse_json_object
from workspace_orchestrator.llm.provider import LLMProvider
from workspace_orchestrator.models import Task


class _LLMReply(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CoreTaskAnalysis(_LLMReply):
    task_id: str = ""
    intent: str
    classification: Literal["simple", "one_tool_call", "complex"] = "simple"
    needs_decomposition: bool = False
    user_input: str | None = None


class AgentStep(_LLMReply):
    id: str
    action: str
    rationale: str = ""
    expected_output: str = ""


class SubTask(_LLMReply):
    id: str
    title: str
    description: str = ""
    expected_output: str = ""


def _task_json(task: Task) -> str:
    return json.dumps(task.model_dump(mode="json", by_alias=True), indent=2)


def build_core_analysis_prompt(task: Task, context: str | None) -> str:
    return f"""You are an expert task analyst. Your job is to analyze a single task.

Output STRICT JSON with this shape only:
{{
  "taskId": "string",
  "intent": "string",
  "classification": "simple|one_tool_call|complex",
  "needsDecomposition": true|false,
  "userInput": "string or null"
}}

"intent" rewrites the title, description and expected output into a form an
LLM can act on. "userInput" is a question for the user when their input is
needed to start or complete the task, otherwise null.

Task JSON:
{_task_json(task)}

Additional Context:
{json.dumps(context) if context else "null"}
"""


def build_decomposition_prompt(analysis: CoreTaskAnalysis) -> str:
    return f"""You are an expert task planner. The following task was marked as needing decomposition.

Break it down into smaller subtasks. Each subtask should be atomic, clear and
self-contained with its own expected output.

Output STRICT JSON as an array of subtasks:
[
  {{"id": "sub1", "title": "string", "description": "string", "expectedOutput": "string"}}
]

Task intent:
{analysis.intent}
"""


def build_plan_prompt(
    task: Task,
    analysis: CoreTaskAnalysis,
    context: str | None,
    subtasks: Sequence[SubTask] = (),
) -> str:
    subtask_block = ""
    if subtasks:
        subtask_json = json.dumps([s.model_dump(by_alias=True) for s in subtasks], indent=2)
        subtask_block = f"\nSubtasks to cover:\n{subtask_json}\n"
    return f"""You are an expert agent planner. The following task is executed by an agent.

Create a sequential plan of steps the agent should follow. Each step should
describe one clear action, explain briefly why it is needed and define its
expected output.

Output STRICT JSON as an array of steps:
[
  {{"id": "step1", "action": "string", "rationale": "string", "expectedOutput": "string"}}
]

Task: {task.title}, {task.description}
Task intent:
{analysis.intent}
Expected Output: {task.expected_output}
Context: {context or ""}
{subtask_block}"""


def _validate_list(items: list[object], model: type[_LLMReply], what: str, raw: str) -> list:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as e:
        raise LLMResponseParseError(what, raw) from e


async def analyze_task_core(
    llm: LLMProvider, task: Task, context: str | None = None
) -> CoreTaskAnalysis:
    raw = await llm.agenerate(build_core_analysis_prompt(task, context))
    data = parse_json_object(raw, what="core task analysis")
    try:
        return CoreTaskAnalysis.model_validate(data)
    except ValidationError as e:
        raise LLMResponseParseError("core task analysis", raw) from e


async def decompose_task(llm: LLMProvider, analysis: CoreTaskAnalysis) -> list[SubTask]:
    raw = await llm.agenerate(build_decomposition_prompt(analysis))
    return _validate_list(parse_json_array(raw, what="decomposition"), SubTask, "decomposition", raw)


async def plan_agentic_task(
    llm: LLMProvider,
    analysis: CoreTaskAnalysis,
    task: Task,
    context: str | None = None,
    subtasks: Sequence[SubTask] = (),
) -> list[AgentStep]:
    raw = await llm.agenerate(build_plan_prompt(task, analysis, context, subtasks))
    steps = _validate_list(parse_json_array(raw, what="agentic plan"), AgentStep, "agentic plan", raw)
    if not steps:
        raise LLMResponseParseError("agentic plan", raw)
    return steps

