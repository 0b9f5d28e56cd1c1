"""Pending interactive prompts.

A running task that needs user input registers a prompt and awaits it; the
``console_input`` handler resolves it when the reply arrives. Waiting is a
single future raced against a timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class PendingPrompt:
    prompt_id: str
    source: str
    created_at: int
    future: asyncio.Future[str] = field(repr=False)

    @property
    def resolved(self) -> bool:
        return self.future.done()

    def to_json(self) -> dict[str, object]:
        return {
            "promptId": self.prompt_id,
            "source": self.source,
            "timestamp": self.created_at,
            "resolved": self.resolved,
        }


class PromptBroker:
    def __init__(self) -> None:
        self._prompts: dict[str, PendingPrompt] = {}

    def register(self, prompt_id: str, source: str = "") -> PendingPrompt:
        existing = self._prompts.get(prompt_id)
        if existing is not None and not existing.resolved:
            return existing
        prompt = PendingPrompt(
            prompt_id=prompt_id,
            source=source,
            created_at=int(time.time() * 1000),
            future=asyncio.get_running_loop().create_future(),
        )
        self._prompts[prompt_id] = prompt
        return prompt

    async def wait_for_input(self, prompt_id: str, timeout: float, source: str = "") -> str:
        """Wait for the reply to ``prompt_id``.

        Raises:
            TimeoutError: No reply arrived within ``timeout`` seconds. The
                prompt is discarded.
        """
        prompt = self.register(prompt_id, source)
        try:
            return await asyncio.wait_for(asyncio.shield(prompt.future), timeout)
        except TimeoutError:
            self._prompts.pop(prompt_id, None)
            if not prompt.future.done():
                prompt.future.cancel()
            logger.warning("Prompt timed out", extra={"prompt_id": prompt_id, "timeout": timeout})
            raise
        finally:
            if prompt.future.done():
                self._prompts.pop(prompt_id, None)

    def resolve(self, prompt_id: str, message: str) -> bool:
        """Deliver a reply. False if the prompt is unknown or already answered."""
        prompt = self._prompts.get(prompt_id)
        if prompt is None or prompt.resolved:
            return False
        prompt.future.set_result(message)
        return True

    def pending(self) -> list[PendingPrompt]:
        return [p for p in self._prompts.values() if not p.resolved]

    def cleanup(self, max_age_seconds: float = 300.0) -> int:
        """Drop prompts older than ``max_age_seconds``. Returns how many were dropped."""
        cutoff = int((time.time() - max_age_seconds) * 1000)
        stale = [pid for pid, p in self._prompts.items() if p.created_at < cutoff]
        for prompt_id in stale:
            prompt = self._prompts.pop(prompt_id)
            if not prompt.future.done():
                prompt.future.cancel()
        return len(stale)
