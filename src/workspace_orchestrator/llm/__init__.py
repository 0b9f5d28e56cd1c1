"""LLM package initialization."""

from workspace_orchestrator.llm.factory import LLMFactory
from workspace_orchestrator.llm.provider import LLMProvider

__all__ = [
    "LLMFactory",
    "LLMProvider",
]
