"""Exception hierarchy shared across the orchestrator.

Configuration errors are fatal to the task or registration they concern and
are never retried. Collaborator errors wrap failures of the LLM, the workflow
evaluator or third-party providers and are converted to per-task or
per-registration failures at the call site.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(OrchestratorError):
    """The workspace or trigger configuration is invalid."""


class CollaboratorError(OrchestratorError):
    """An external collaborator failed or returned unusable output."""


class LLMResponseParseError(CollaboratorError):
    """The language model reply could not be parsed into the expected JSON shape."""

    def __init__(self, what: str, raw: str) -> None:
        super().__init__(f"Failed to parse {what}: {raw[:500]}")
        self.what = what
        self.raw = raw


class WorkflowExecutionError(CollaboratorError):
    """A workflow could not be resolved or executed."""
