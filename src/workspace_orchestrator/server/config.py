"""Configuration for the HTTP/WebSocket server.

The server starts without any credentials: Telegram bot tokens and LLM keys
travel with the trigger and workspace definitions they belong to.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the server process."""

    host: str = Field(default="127.0.0.1", validation_alias="ORCHESTRATOR_HOST")
    port: int = Field(default=3001, validation_alias="ORCHESTRATOR_PORT", ge=1, le=65535)

    public_base_url: str = Field(
        default="http://localhost:3001",
        validation_alias="ORCHESTRATOR_PUBLIC_BASE_URL",
        description=(
            "Externally reachable base URL of this server. Webhook and Telegram endpoints "
            "handed out at trigger registration are built from it."
        ),
    )

    telegram_api_base_url: str = Field(
        default="https://api.telegram.org",
        validation_alias="TELEGRAM_API_BASE_URL",
        description="Base URL of the Telegram Bot API.",
    )

    provider_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="ORCHESTRATOR_PROVIDER_TIMEOUT_SECONDS",
        description="Timeout (seconds) for calls to third-party trigger providers.",
        gt=0,
    )

    prompt_max_age_seconds: float = Field(
        default=300.0,
        validation_alias="ORCHESTRATOR_PROMPT_MAX_AGE_SECONDS",
        description="Pending interactive prompts older than this are dropped periodically.",
        gt=0,
    )

    # Dev-friendly CORS. Override via ORCHESTRATOR_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="ORCHESTRATOR_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
