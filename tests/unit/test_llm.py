"""Unit tests for LLM provider construction."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from workspace_orchestrator.llm.config import LLMConfig
from workspace_orchestrator.llm.factory import LLMFactory
from workspace_orchestrator.llm.openai_provider import OpenAIProvider
from workspace_orchestrator.models import LLMOption


def test_for_option_uses_workspace_selection_and_key() -> None:
    option = LLMOption(provider="Groq", model={"id": "llama-3.1-70b"})

    provider = LLMFactory.for_option(option, "gsk-test", LLMConfig(_env_file=None))

    assert isinstance(provider, OpenAIProvider)
    assert provider.model == "llama-3.1-70b"
    assert provider.config.provider == "groq"
    assert provider.config.openai_api_key == "gsk-test"


def test_for_option_falls_back_to_defaults() -> None:
    defaults = LLMConfig(_env_file=None, openai_api_key="sk-env", openai_model="gpt-4o")

    provider = LLMFactory.for_option(None, None, defaults)

    assert provider.model == "gpt-4o"


def test_unsupported_provider_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported LLM provider: anthropic-direct"):
        LLMFactory.for_option(LLMOption(provider="anthropic-direct", model="x"), "key")


def test_hosted_provider_requires_api_key() -> None:
    with pytest.raises(ValueError, match="API key is required"):
        OpenAIProvider(LLMConfig(_env_file=None, provider="openai"))


async def test_agenerate_sends_a_single_user_message() -> None:
    client = Mock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))]
    )
    provider = OpenAIProvider(LLMConfig(_env_file=None, openai_api_key="sk-test"), client=client)

    assert await provider.agenerate("Say hello") == "hello"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "Say hello"}]
    assert kwargs["model"] == "gpt-4o-mini"
