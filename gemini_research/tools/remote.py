"""RemoteService — the capability PlanGenerator and JobController consume.

GeminiClient is the production implementation; unit tests pass a scripted
fake with the same three coroutines. Every failure must surface as
``ApiError`` carrying the HTTP status (None for network errors) so callers
can classify it.
"""

from __future__ import annotations

from typing import Protocol

from gemini_research.models.schemas import Interaction


class RemoteService(Protocol):
    async def create_job(
        self, input: str, agent: str | None = None, background: bool = True
    ) -> Interaction: ...

    async def get_job(self, identifier: str) -> Interaction: ...

    async def generate_text(self, prompt: str, model: str) -> str: ...
