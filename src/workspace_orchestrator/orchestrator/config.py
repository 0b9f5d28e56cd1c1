"""Configuration for the workspace orchestrator.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing here is required at startup: an orchestrator with defaults can run
workspaces whose LLM credentials travel with the workspace definition.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorSettings(BaseSettings):
    """Settings for running workspaces.

    Environment variables:
    - LOG_LEVEL                                   (optional)
    - AGENT_STATE_PATH                            (optional)
    - ORCHESTRATOR_OUTPUT_PATH                    (optional)
    - ORCHESTRATOR_CONTEXT_SEPARATOR              (optional)
    - ORCHESTRATOR_WORKFLOW_REQUEST_TIMEOUT_SECONDS (optional)
    - ORCHESTRATOR_WORKFLOW_ENGINE_URL            (optional)
    - MAIN_AGENT_VERSION                          (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `OrchestratorSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    agent_state_path: Path = Field(
        default=Path("agent_state"),
        validation_alias="AGENT_STATE_PATH",
        description="Directory where cached workspace definitions are persisted",
    )

    output_path: Path = Field(
        default=Path("Output"),
        validation_alias="ORCHESTRATOR_OUTPUT_PATH",
        description="Directory where run transcripts are written",
    )

    context_separator: str = Field(
        default=" , ",
        validation_alias="ORCHESTRATOR_CONTEXT_SEPARATOR",
        description="Separator used to join upstream task results into a task's context",
    )

    workflow_request_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="ORCHESTRATOR_WORKFLOW_REQUEST_TIMEOUT_SECONDS",
        description="How long a task waits for a workflow reply; also bounds engine HTTP calls",
        gt=0,
    )

    prompt_timeout_seconds: float = Field(
        default=120.0,
        validation_alias="ORCHESTRATOR_PROMPT_TIMEOUT_SECONDS",
        description="How long an agent task waits for interactive user input",
        gt=0,
    )

    agent_max_iterations: int = Field(
        default=5,
        validation_alias="ORCHESTRATOR_AGENT_MAX_ITERATIONS",
        description="Maximum generate/review rounds for one agent task",
        ge=1,
        le=20,
    )

    assignment_min_confidence: float = Field(
        default=0.5,
        validation_alias="ORCHESTRATOR_ASSIGNMENT_MIN_CONFIDENCE",
        description="Executor assignments below this confidence are logged as warnings",
        ge=0.0,
        le=1.0,
    )

    workflow_engine_url: str = Field(
        default="",
        validation_alias="ORCHESTRATOR_WORKFLOW_ENGINE_URL",
        description=(
            "Base URL of the node-graph workflow evaluator. Workflow bodies handed back by a "
            "client (or resolved for headless runs) are POSTed to `<url>/execute`."
        ),
    )

    main_agent_version: str = Field(
        default="1.0.0",
        validation_alias="MAIN_AGENT_VERSION",
        description="Version of the main agent used to run workspaces",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def workspaces_state_dir(self) -> Path:
        """Directory where workspace definitions are persisted for headless runs."""

        return self.agent_state_path / "workspaces"
