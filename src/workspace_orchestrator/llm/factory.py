"""Factory for creating LLM providers."""

import logging

from workspace_orchestrator.llm.config import DEFAULT_BASE_URLS, LLMConfig
from workspace_orchestrator.llm.openai_provider import OpenAIProvider
from workspace_orchestrator.llm.provider import LLMProvider
from workspace_orchestrator.models import LLMOption

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating LLM provider instances."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create an LLM provider based on configuration.

        Args:
            config: LLM configuration specifying the provider.

        Returns:
            Configured LLM provider instance.

        Raises:
            ValueError: If provider type is not supported.
        """
        logger.info(f"Creating LLM provider: {config.provider}")

        if config.provider in DEFAULT_BASE_URLS:
            return OpenAIProvider(config)
        raise ValueError(f"Unsupported LLM provider: {config.provider}")

    @staticmethod
    def for_option(
        option: LLMOption | None, api_key: str | None, defaults: LLMConfig | None = None
    ) -> LLMProvider:
        """Create a provider for a workspace or agent LLM selection.

        Falls back to ``defaults`` (environment configuration) for anything the
        selection leaves open.
        """
        base = defaults or LLMConfig()
        if option is None:
            updates: dict[str, object] = {}
        else:
            provider = option.provider.strip().lower()
            if provider not in DEFAULT_BASE_URLS:
                raise ValueError(f"Unsupported LLM provider: {option.provider}")
            updates = {"provider": provider, "openai_model": option.model_id}
        if api_key:
            updates["openai_api_key"] = api_key
        return LLMFactory.create(base.model_copy(update=updates))
