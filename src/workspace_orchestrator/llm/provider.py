"""Abstract base class for LLM providers."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """Pluggable text-completion backend.

    Implementations are synchronous SDK wrappers. The orchestrator only calls
    :meth:`agenerate`, which runs :meth:`generate` in a worker thread.
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Complete a single prompt and return the raw reply text.

        Callers that expect JSON parse the reply themselves.
        """

    @abstractmethod
    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Complete a conversation of ``{"role", "content"}`` messages."""

    async def agenerate(self, prompt: str, **kwargs: Any) -> str:
        return await asyncio.to_thread(self.generate, prompt, **kwargs)
