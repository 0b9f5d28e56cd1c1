"""OpenAI LLM provider implementation.

Also serves OpenAI-compatible endpoints (Groq, OpenRouter, Ollama) through the
SDK's ``base_url`` option.
"""

import logging
from typing import Any

from openai import OpenAI

from workspace_orchestrator.llm.config import LLMConfig
from workspace_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig, client: OpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.
            client: Optional pre-built client (tests inject a stub here).

        Raises:
            ValueError: If API key is not provided for a hosted provider.
        """
        if not config.openai_api_key and config.provider != "ollama":
            raise ValueError(f"API key is required for provider '{config.provider}'")

        self.config = config
        self.client = client or OpenAI(
            api_key=config.openai_api_key or "ollama",
            base_url=config.resolved_base_url(),
            timeout=config.request_timeout_seconds,
        )
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info(
            "LLM provider initialized",
            extra={"provider": config.provider, "model": self.model},
        )

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        return self.chat(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Generate chat completion using the OpenAI API.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            **kwargs: Additional OpenAI-specific parameters.

        Returns:
            Generated chat response.
        """
        temp = temperature if temperature is not None else self.temperature

        logger.debug(f"Generating chat completion with {len(messages)} messages")

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore
            max_tokens=max_tokens,
            temperature=temp,
            **kwargs,
        )

        content = response.choices[0].message.content or ""
        logger.debug(f"Generated {len(content)} characters")

        return content
