"""Configuration for LLM providers."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["openai", "groq", "openrouter", "ollama"]

# OpenAI-compatible endpoints reachable through the OpenAI SDK.
DEFAULT_BASE_URLS: dict[str, str | None] = {
    "openai": None,
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "ollama": "http://localhost:11434/v1",
}


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: ProviderName = Field(
        default="openai",
        description="LLM provider to use",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible endpoint",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Model to use",
    )
    openai_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override the API base URL (defaults depend on the provider)",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for a single completion request",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )

    def resolved_base_url(self) -> str | None:
        if self.openai_base_url:
            return self.openai_base_url
        return DEFAULT_BASE_URLS.get(self.provider)
