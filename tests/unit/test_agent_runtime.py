"""Unit tests for the plan-then-run agent loop."""

from __future__ import annotations

import json

import pytest

from tests.fakes import ScriptedLLM
from workspace_orchestrator.agents.runtime import AgentRuntime
from workspace_orchestrator.errors import LLMResponseParseError
from workspace_orchestrator.models import Agent, Task
from workspace_orchestrator.tasks.interpreter import AgentStep

AGENT = Agent(id="ag-1", name="Poet", role="poet")
TASK = Task(id="t1", title="Poem", expected_output="4 lines")
PLAN = [AgentStep(id="step1", action="Write it")]

COMPLETE = json.dumps({"task_completion_status": "complete", "feedback": {}})
REVISE = json.dumps(
    {"task_completion_status": "needs_revision", "feedback": {"weaknesses": "too short"}}
)
KEEP_GOING = json.dumps({"accept": False, "reason": "weak", "next_action": "revise"})
ACCEPT = json.dumps({"accept": True, "reason": "fine", "next_action": "deliver"})


def _runtime(llm: ScriptedLLM, max_iterations: int = 3) -> AgentRuntime:
    return AgentRuntime(
        agent=AGENT, task=TASK, llm=llm, plan=PLAN, context="ctx", max_iterations=max_iterations
    )


async def test_output_accepted_by_reviewer() -> None:
    llm = ScriptedLLM(["draft", COMPLETE])

    assert await _runtime(llm).run() == "draft"
    assert len(llm.prompts) == 2


async def test_final_check_can_accept_a_revision_request() -> None:
    llm = ScriptedLLM(["draft", REVISE, ACCEPT])

    assert await _runtime(llm).run() == "draft"


async def test_feedback_is_applied_in_the_next_round() -> None:
    llm = ScriptedLLM(["draft", REVISE, KEEP_GOING, "better draft", COMPLETE])

    assert await _runtime(llm).run() == "better draft"
    revision_prompt = llm.prompts[3]
    assert "REVISION ROUND" in revision_prompt
    assert "too short" in revision_prompt
    assert "draft" in revision_prompt


async def test_last_output_returned_after_max_iterations() -> None:
    llm = ScriptedLLM(["one", REVISE, KEEP_GOING, "two", REVISE, KEEP_GOING])

    assert await _runtime(llm, max_iterations=2).run() == "two"
    assert llm.replies == []


async def test_unparseable_review_fails_the_run() -> None:
    llm = ScriptedLLM(["draft", "looks good to me"])

    with pytest.raises(LLMResponseParseError, match="review"):
        await _runtime(llm).run()
