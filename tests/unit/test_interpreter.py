"""Unit tests for LLM reply parsing and task analysis."""

from __future__ import annotations

import json

import pytest

from tests.fakes import ScriptedLLM
from workspace_orchestrator.errors import LLMResponseParseError
from workspace_orchestrator.llm.parsing import parse_json_array, parse_json_object
from workspace_orchestrator.models import Task
from workspace_orchestrator.tasks.interpreter import (
    analyze_task_core,
    decompose_task,
    plan_agentic_task,
)

TASK = Task(id="t1", title="Write a poem", description="About the sea", expected_output="4 lines")

ANALYSIS = json.dumps(
    {
        "taskId": "t1",
        "intent": "Write a four line poem about the sea",
        "classification": "simple",
        "needsDecomposition": False,
        "userInput": None,
    }
)

PLAN = json.dumps(
    [{"id": "step1", "action": "Draft the poem", "rationale": "", "expectedOutput": "poem"}]
)


def test_parse_json_object_extracts_object_from_prose() -> None:
    assert parse_json_object('Sure! {"a": 1} Hope this helps.', what="x") == {"a": 1}


def test_parse_json_array_strips_code_fences() -> None:
    assert parse_json_array('```json\n[1, 2]\n```', what="x") == [1, 2]


def test_parse_json_object_rejects_arrays() -> None:
    with pytest.raises(LLMResponseParseError, match="Failed to parse thing"):
        parse_json_object("[1, 2]", what="thing")


def test_parse_error_keeps_raw_reply() -> None:
    with pytest.raises(LLMResponseParseError) as excinfo:
        parse_json_array("no json here", what="plan")

    assert excinfo.value.raw == "no json here"
    assert excinfo.value.what == "plan"


async def test_analyze_task_core_reads_camel_case_reply() -> None:
    llm = ScriptedLLM([ANALYSIS])

    analysis = await analyze_task_core(llm, TASK, "previous output")

    assert analysis.intent.startswith("Write a four line poem")
    assert analysis.needs_decomposition is False
    assert analysis.user_input is None
    assert '"previous output"' in llm.prompts[0]


async def test_analyze_task_core_rejects_missing_intent() -> None:
    llm = ScriptedLLM([json.dumps({"taskId": "t1"})])

    with pytest.raises(LLMResponseParseError, match="core task analysis"):
        await analyze_task_core(llm, TASK)


async def test_decompose_task_returns_subtasks() -> None:
    llm = ScriptedLLM(
        [ANALYSIS, json.dumps([{"id": "sub1", "title": "Rhyme", "expectedOutput": "words"}])]
    )
    analysis = await analyze_task_core(llm, TASK)

    subtasks = await decompose_task(llm, analysis)

    assert [s.title for s in subtasks] == ["Rhyme"]
    assert subtasks[0].expected_output == "words"


async def test_plan_includes_subtasks_in_prompt() -> None:
    llm = ScriptedLLM(
        [ANALYSIS, json.dumps([{"id": "sub1", "title": "Rhyme"}]), PLAN]
    )
    analysis = await analyze_task_core(llm, TASK)
    subtasks = await decompose_task(llm, analysis)

    steps = await plan_agentic_task(llm, analysis, TASK, "ctx", subtasks)

    assert [s.action for s in steps] == ["Draft the poem"]
    assert "Subtasks to cover" in llm.prompts[-1]


async def test_empty_plan_is_rejected() -> None:
    llm = ScriptedLLM([ANALYSIS, "[]"])
    analysis = await analyze_task_core(llm, TASK)

    with pytest.raises(LLMResponseParseError, match="agentic plan"):
        await plan_agentic_task(llm, analysis, TASK)
