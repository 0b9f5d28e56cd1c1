"""Plan-then-run agent runtime.

The agent produces an answer by following a step plan, a reviewer scores it,
and when the reviewer asks for a revision a final evaluator decides whether
another round is worth it. The loop is bounded by ``max_iterations``; the last
output is returned either way.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from workspace_orchestrator.llm.parsing import parse_json_object
from workspace_orchestrator.llm.provider import LLMProvider
from workspace_orchestrator.models import Agent, Task
from workspace_orchestrator.tasks.interpreter import AgentStep

logger = logging.getLogger(__name__)


class AgentRuntime:
    """Runs one task with one agent."""

    def __init__(
        self,
        *,
        agent: Agent,
        task: Task,
        llm: LLMProvider,
        plan: Sequence[AgentStep],
        context: str = "",
        intent: str = "",
        max_iterations: int = 5,
    ) -> None:
        self.agent = agent
        self.task = task
        self.llm = llm
        self.plan = list(plan)
        self.context = context
        self.intent = intent
        self.max_iterations = max_iterations

    async def run(self) -> str:
        output = ""
        feedback: object = None

        for iteration in range(self.max_iterations):
            logger.debug(
                "Agent iteration",
                extra={"agent_id": self.agent.id, "task_id": self.task.id, "iteration": iteration + 1},
            )
            output = await self.llm.agenerate(self._build_prompt(iteration, output, feedback))

            review = parse_json_object(
                await self.llm.agenerate(self._build_review_prompt(output)), what="review"
            )
            status = review.get("task_completion_status")
            if status == "complete":
                logger.info("Agent output accepted by reviewer", extra={"task_id": self.task.id})
                return output

            final_check = parse_json_object(
                await self.llm.agenerate(self._build_final_check_prompt(output)),
                what="final check",
            )
            if final_check.get("accept") is True:
                logger.info("Agent output accepted by final check", extra={"task_id": self.task.id})
                return output

            feedback = review.get("feedback")

        logger.warning(
            "Max iterations reached, returning last output",
            extra={"task_id": self.task.id, "max_iterations": self.max_iterations},
        )
        return output

    def _build_prompt(self, iteration: int, previous: str, feedback: object) -> str:
        plan_json = json.dumps([step.model_dump(by_alias=True) for step in self.plan], indent=2)
        prompt = f"""You are {self.agent.name}, a highly skilled {self.agent.role}.

TASK INFORMATION:
- TITLE: {self.task.title}
- INTENT: {self.intent}
- DESCRIPTION: {self.task.description}
- CONTEXT: {json.dumps(self.context) if self.context else "No context provided"}

Your objective is to deliver the best possible output by strictly following this plan:
{plan_json}
"""
        if iteration > 0:
            rendered = feedback if isinstance(feedback, str) else json.dumps(feedback, indent=2)
            prompt += f"""
REVISION ROUND: improve upon your previous response.

PREVIOUS RESULT:
{previous}

FEEDBACK TO APPLY:
{rendered}

Fix the weaknesses and missing elements named in the feedback and keep the good parts.
"""
        return (
            prompt
            + f"""
EXPECTED OUTPUT FORMAT: {self.task.expected_output}

Deliver only the final response, without reasoning steps or extra commentary."""
        )

    def _build_review_prompt(self, response: str) -> str:
        return f"""You are a strict quality reviewer. Evaluate the response against the task requirements and return JSON only.

TASK TITLE: {self.task.title}
TASK DESCRIPTION: {self.task.description}
EXPECTED OUTPUT FORMAT: {self.task.expected_output}

RESPONSE TO REVIEW:
{response}

Return JSON with this exact shape:
{{
  "valid": true/false,
  "complete": true/false,
  "accuracy": true/false,
  "clarity": true/false,
  "overall_score": 0-100,
  "feedback": {{
    "strengths": "string",
    "weaknesses": "string",
    "missing_elements": "string",
    "improvement_suggestions": "string"
  }},
  "task_completion_status": "complete" | "needs_revision" | "inadequate"
}}"""

    def _build_final_check_prompt(self, response: str) -> str:
        return f"""You are the final evaluator. Decide whether the current response is good enough to stop iterating.

TASK TITLE: {self.task.title}
TASK DESCRIPTION: {self.task.description}
EXPECTED OUTPUT FORMAT: {self.task.expected_output}

CURRENT RESPONSE:
{response}

Return STRICT JSON only:
{{
  "accept": true/false,
  "reason": "string",
  "next_action": "deliver" | "revise"
}}"""
