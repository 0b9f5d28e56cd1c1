"""Workspace domain models.

Workspaces are authored by the frontend and arrive as camelCase JSON. Models
accept both camelCase and snake_case field names and dump camelCase when
``by_alias=True``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TaskType(str, Enum):
    WORKFLOW = "workflow"
    SPECIFIC_AGENT = "specific-agent"
    AGENTIC = "agentic"
    MCP = "mcp"


class Task(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    expected_output: str = ""
    type: TaskType = TaskType.AGENTIC
    executor_id: str | None = None


class TaskConnection(_WireModel):
    model_config = ConfigDict(frozen=True)

    from_task_id: str
    to_task_id: str


class LLMOption(_WireModel):
    """LLM selection as stored on a workspace or agent."""

    provider: str
    model: str | dict[str, Any]

    @property
    def model_id(self) -> str:
        if isinstance(self.model, dict):
            return str(self.model.get("id") or self.model.get("name") or "")
        return self.model


class ToolConfig(_WireModel):
    name: str
    is_input_channel: bool = False
    is_output_producer: bool = False
    is_judge: bool = False


class Agent(_WireModel):
    id: str
    name: str
    role: str = ""
    objective: str = ""
    background: str = ""
    capabilities: str = ""
    tools: list[ToolConfig] = Field(default_factory=list)
    llm: LLMOption | None = None
    api_key: str = ""
    variables: dict[str, str] = Field(default_factory=dict)


class Workflow(_WireModel):
    """A node-graph pipeline. The body is opaque to the orchestrator."""

    id: str
    name: str = ""
    description: str = ""
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    connections: list[dict[str, Any]] = Field(default_factory=list)


class WorkspaceData(_WireModel):
    id: str
    name: str
    description: str = ""
    main_llm: LLMOption | None = Field(default=None, alias="mainLLM")
    api_key: str = ""

    tasks: list[Task] = Field(default_factory=list)
    connections: list[TaskConnection] = Field(default_factory=list)
    agents: list[Agent] = Field(default_factory=list)
    workflows: list[Workflow] = Field(default_factory=list)
    mcps: list[str] = Field(default_factory=list)

    created_at: int | None = None
    updated_at: int | None = None

    def get_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_agent(self, agent_id: str) -> Agent | None:
        return next((a for a in self.agents if a.id == agent_id), None)

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return next((w for w in self.workflows if w.id == workflow_id), None)


ConsoleEventType = Literal["system", "info", "warning", "success", "error", "input", "user"]


class ConsoleEvent(_WireModel):
    """One lifecycle event of a run, as rendered by the console UI."""

    id: int
    run_id: str
    timestamp: int
    type: ConsoleEventType
    message: str
    details: str | None = None
    results: str | None = None
    data: dict[str, Any] | None = None
