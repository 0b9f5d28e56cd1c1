"""The main agent: runs every task of a workspace in dependency order.

Tasks are walked layer by layer. Each task gets the joined results of its
upstream tasks as context, is resolved to an executor (asking the LLM for
agentic tasks), executed, and its result recorded. A failing task is reported
and recorded as an error; later tasks still run with whatever context is
available. Abort requests are honoured between layers.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from typing import Any, assert_never
from uuid import uuid4

from workspace_orchestrator.agents.runtime import AgentRuntime
from workspace_orchestrator.channels.base import Channel
from workspace_orchestrator.channels.prompts import PromptBroker
from workspace_orchestrator.errors import (
    CollaboratorError,
    ConfigurationError,
    WorkflowExecutionError,
)
from workspace_orchestrator.llm.config import LLMConfig
from workspace_orchestrator.llm.factory import LLMFactory
from workspace_orchestrator.llm.provider import LLMProvider
from workspace_orchestrator.models import Agent, Task, WorkspaceData
from workspace_orchestrator.orchestrator.config import OrchestratorSettings
from workspace_orchestrator.orchestrator.events import EventEmitter
from workspace_orchestrator.orchestrator.logging import run_logging_context
from workspace_orchestrator.orchestrator.run_state import RunSnapshot, RunState, transition
from workspace_orchestrator.orchestrator.transcript import TranscriptWriter
from workspace_orchestrator.orchestrator.workflows import (
    HttpWorkflowEngine,
    ToolInvoker,
    WorkflowRunner,
)
from workspace_orchestrator.tasks.assignment import (
    AgentTarget,
    ExecutorTarget,
    ToolTarget,
    WorkflowTarget,
    assign_best_fit,
    static_executor,
)
from workspace_orchestrator.tasks.graph import (
    LayerEntry,
    TaskGraphError,
    build_layers_with_context,
    build_task_context,
    missing_dependencies,
)
from workspace_orchestrator.tasks.interpreter import (
    analyze_task_core,
    decompose_task,
    plan_agentic_task,
)

logger = logging.getLogger(__name__)

META_KEY = "__meta__"


def stringify_result(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


class WorkspaceOrchestrator:
    version = "1.0.0"

    def __init__(
        self,
        workspace: WorkspaceData,
        channel: Channel,
        *,
        settings: OrchestratorSettings | None = None,
        llm: LLMProvider | None = None,
        llm_defaults: LLMConfig | None = None,
        workflow_runner: WorkflowRunner | None = None,
        transcript_writer: TranscriptWriter | None = None,
        tool_invoker: ToolInvoker | None = None,
        prompts: PromptBroker | None = None,
        trigger_payload: str | None = None,
        run_id: str | None = None,
    ) -> None:
        self.workspace = workspace
        self.channel = channel
        self.settings = settings or OrchestratorSettings()
        self.run_id = run_id or uuid4().hex
        self.events = EventEmitter(channel, self.run_id)

        self._llm = llm
        self._llm_defaults = llm_defaults
        self.workflow_runner = workflow_runner or WorkflowRunner(
            HttpWorkflowEngine(
                self.settings.workflow_engine_url,
                timeout_seconds=self.settings.workflow_request_timeout_seconds,
            ),
            timeout_seconds=self.settings.workflow_request_timeout_seconds,
        )
        self.transcript_writer = transcript_writer or TranscriptWriter(self.settings.output_path)
        self.tool_invoker = tool_invoker
        self.prompts = prompts
        self.trigger_payload = trigger_payload

        self.errors: dict[str, str] = {}
        self._snapshot = RunSnapshot(state=RunState.INITIALIZING)
        self._abort_requested = False

    @property
    def state(self) -> RunState:
        return self._snapshot.state

    @property
    def llm(self) -> LLMProvider:
        """Main LLM of the workspace, built on first use."""
        if self._llm is None:
            self._llm = LLMFactory.for_option(
                self.workspace.main_llm, self.workspace.api_key, self._llm_defaults
            )
        return self._llm

    def abort(self) -> None:
        """Stop before the next layer. The task in flight runs to completion."""
        self._abort_requested = True
        logger.info("Abort requested", extra={"run_id": self.run_id})

    def _advance(self, to: RunState, *, task_id: str | None = None, layer: int | None = None) -> None:
        self._snapshot = transition(current=self._snapshot, to=to, task_id=task_id, layer_index=layer)

    async def run(self) -> dict[str, str]:
        """Run the workspace and return the result map.

        Raises:
            TaskGraphError: The task graph is empty, dangling or cyclic. No
                task has run.
        """
        with run_logging_context(self.run_id):
            return await self._run()

    async def _run(self) -> dict[str, str]:
        logger.info(
            "Workspace run started",
            extra={"run_id": self.run_id, "workspace_id": self.workspace.id},
        )
        await self.events.system("Main agent initializing...")

        try:
            layers = build_layers_with_context(self.workspace.tasks, self.workspace.connections)
        except TaskGraphError as e:
            await self.events.error(f"Invalid task graph: {e}")
            raise

        results: dict[str, str] = {}
        total = len(self.workspace.tasks)
        step = 0
        aborted = False

        for layer_index, layer in enumerate(layers):
            if self._abort_requested:
                aborted = True
                break
            for entry in layer:
                step += 1
                await self._run_task(step, total, entry, layer_index, results)

        await self._finalize(layers, results, aborted=aborted)
        return results

    async def _run_task(
        self,
        step: int,
        total: int,
        entry: LayerEntry,
        layer_index: int,
        results: dict[str, str],
    ) -> None:
        task = self.workspace.get_task(entry.task_id)
        if task is None:
            # build_layers_with_context only yields declared task ids.
            raise ConfigurationError(f"Task '{entry.task_id}' disappeared from the workspace")

        context = await self._context_for(task, entry, results)
        try:
            target = static_executor(task)
            if target is None:
                self._advance(RunState.ASSIGNING, task_id=task.id, layer=layer_index)
                target = await self._assign(task)
            self._advance(RunState.DISPATCHING, task_id=task.id, layer=layer_index)
            result = await self._dispatch(step, total, task, target, context)
        except Exception as e:
            logger.exception(
                "Task failed",
                extra={"run_id": self.run_id, "task_id": task.id, "error": str(e)},
            )
            self.errors[task.id] = str(e) or type(e).__name__
            self._collect(task.id, layer_index)
            await self.events.task_failed(step, total, task.title, self.errors[task.id])
            return

        self._collect(task.id, layer_index)
        results[task.id] = result
        await self.events.task_succeeded(step, total, task.title, result)

    def _collect(self, task_id: str, layer_index: int) -> None:
        # A failed assignment still passes through dispatch so every task ends collected.
        if self.state is RunState.INITIALIZING or self.state is RunState.COLLECTING:
            self._advance(RunState.DISPATCHING, task_id=task_id, layer=layer_index)
        if self.state is RunState.ASSIGNING:
            self._advance(RunState.DISPATCHING)
        self._advance(RunState.COLLECTING)

    async def _context_for(self, task: Task, entry: LayerEntry, results: dict[str, str]) -> str:
        if not entry.upstream_ids:
            return self.trigger_payload or ""

        missing = missing_dependencies(entry, results)
        if missing:
            await self.events.warning(
                f"Task '{task.title}' runs without results from: {', '.join(missing)}",
                data={"taskId": task.id, "missing": missing},
            )
        return build_task_context(entry, results, self.settings.context_separator)

    async def _assign(self, task: Task) -> ExecutorTarget:
        await self.events.system(f"Assigning task '{task.title}'...")
        assignment = await assign_best_fit(
            self.llm,
            task,
            self.workspace.workflows,
            self.workspace.agents,
            self.workspace.mcps,
            min_confidence=self.settings.assignment_min_confidence,
        )
        await self.events.system(
            f"Assigned task '{task.title}' to {assignment.type} '{assignment.id}' "
            f"(confidence {assignment.confidence:.2f}).",
            details=assignment.reasoning,
        )
        return assignment.to_executor()

    async def _dispatch(
        self, step: int, total: int, task: Task, target: ExecutorTarget, context: str
    ) -> str:
        match target:
            case WorkflowTarget(workflow_id=workflow_id):
                return await self._run_workflow(step, total, task, workflow_id, context)
            case AgentTarget(agent_id=agent_id):
                return await self._run_agent(step, total, task, agent_id, context)
            case ToolTarget(tool_id=tool_id):
                return await self._run_tool(step, total, task, tool_id, context)
            case _:
                assert_never(target)

    async def _run_workflow(
        self, step: int, total: int, task: Task, workflow_id: str, context: str
    ) -> str:
        await self.events.info(f"[{step}/{total}] Running task '{task.title}' (workflow: {workflow_id})")
        value = await self.workflow_runner.run(self.channel, workflow_id, context)
        if value is None or value == "":
            raise WorkflowExecutionError(f"Workflow '{workflow_id}' returned no result")
        return stringify_result(value)

    def _agent_llm(self, agent: Agent) -> LLMProvider:
        if agent.llm is None:
            return self.llm
        return LLMFactory.for_option(
            agent.llm, agent.api_key or self.workspace.api_key, self._llm_defaults
        )

    async def _run_agent(
        self, step: int, total: int, task: Task, agent_id: str, context: str
    ) -> str:
        agent = self.workspace.get_agent(agent_id)
        if agent is None:
            raise ConfigurationError(f"Agent '{agent_id}' not found in workspace")

        await self.events.system(f"Analysing task '{task.title}'...")
        analysis = await analyze_task_core(self.llm, task, context)

        if analysis.user_input:
            context = await self._ask_user(task, analysis.user_input, context)

        subtasks = []
        if analysis.needs_decomposition:
            subtasks = await decompose_task(self.llm, analysis)

        await self.events.info("Creating agent plan...")
        plan = await plan_agentic_task(self.llm, analysis, task, context, subtasks)
        await self.events.success(
            "Agent plan created successfully",
            results=json.dumps([s.model_dump(by_alias=True) for s in plan], indent=2),
        )

        await self.events.info(f"[{step}/{total}] Running agent '{agent.name}' for '{task.title}'")
        runtime = AgentRuntime(
            agent=agent,
            task=task,
            llm=self._agent_llm(agent),
            plan=plan,
            context=context,
            intent=analysis.intent,
            max_iterations=self.settings.agent_max_iterations,
        )
        output = await runtime.run()
        if not output:
            raise CollaboratorError(f"Agent '{agent.name}' produced no output")
        return output

    async def _ask_user(self, task: Task, question: str, context: str) -> str:
        if self.prompts is None:
            logger.info(
                "Task asked for user input but no prompt broker is attached",
                extra={"run_id": self.run_id, "task_id": task.id},
            )
            return context

        prompt_id = uuid4().hex
        await self.events.emit("input", question, data={"promptId": prompt_id, "taskId": task.id})
        try:
            answer = await self.prompts.wait_for_input(
                prompt_id, self.settings.prompt_timeout_seconds, source=task.id
            )
        except TimeoutError:
            await self.events.warning(
                f"No input received for task '{task.title}', continuing without it."
            )
            return context

        await self.events.emit("user", answer, details="User input")
        return f"{context}\nUser input: {answer}" if context else f"User input: {answer}"

    async def _run_tool(
        self, step: int, total: int, task: Task, tool_id: str, context: str
    ) -> str:
        if self.tool_invoker is None:
            raise ConfigurationError(f"No tool invoker configured to run tool '{tool_id}'")
        await self.events.info(f"[{step}/{total}] Running task '{task.title}' (tool: {tool_id})")
        output = await self.tool_invoker.invoke(tool_id, task, context)
        if not output:
            raise CollaboratorError(f"Tool '{tool_id}' returned no result")
        return output

    def _final_result(self, layers: Sequence[Sequence[LayerEntry]], results: dict[str, str]) -> str:
        final_ids = [entry.task_id for entry in layers[-1]] if layers else []
        for task_id in reversed(final_ids):
            if task_id in results:
                return results[task_id]
        return json.dumps(results, indent=2)

    async def _finalize(
        self,
        layers: Sequence[Sequence[LayerEntry]],
        results: dict[str, str],
        *,
        aborted: bool,
    ) -> None:
        self._advance(RunState.FINALIZING)

        if aborted:
            await self.events.error(
                "Workspace run aborted",
                details=f"{len(results)} of {len(self.workspace.tasks)} tasks completed",
            )
        elif self.errors:
            await self.events.warning(
                f"Workspace completed with {len(self.errors)} failed task(s).",
                results=self._final_result(layers, results),
            )
        else:
            await self.events.success(
                "Workspace completed successfully.", results=self._final_result(layers, results)
            )

        try:
            path = await self.transcript_writer.write(
                self.workspace.name, self.workspace.tasks, results, self.errors
            )
        except OSError as e:
            logger.exception("Failed to save results", extra={"run_id": self.run_id})
            await self.events.error(f"Failed to save results: {e}")
        else:
            await self.events.success(f"Results saved to {path}")

        results[META_KEY] = json.dumps(
            {"version": self.version, "timestamp": int(time.time() * 1000)}
        )
        self._advance(RunState.DONE)
        logger.info(
            "Workspace run finished",
            extra={
                "run_id": self.run_id,
                "workspace_id": self.workspace.id,
                "aborted": aborted,
                "failed_tasks": len(self.errors),
            },
        )
