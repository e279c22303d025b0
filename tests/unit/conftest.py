"""Unit-test conftest — ScriptedService, FakeClock, and shared fixtures.

All fixtures here are available to every test under tests/unit/ without import.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from gemini_research.config import settings
from gemini_research.errors import ApiError
from gemini_research.models.schemas import Interaction
from gemini_research.models.synapse import SynapseEventBus


# ─────────────────────────────────────────────────────────────────────────────
# ScriptedService — drop-in replacement for GeminiClient
# ─────────────────────────────────────────────────────────────────────────────

class ScriptedService:
    """Scripted RemoteService for unit tests.

    Script entries are either a response (Interaction, dict, or str for
    generate_text) or an exception instance, which is raised instead.

    Args:
        create:    Response to create_job (default: {"name": "interactions/job-1"}).
        polls:     Responses to successive get_job calls. The last entry
                   repeats forever once the others are used up.
        generate:  model name -> response for generate_text. Models not listed
                   raise ApiError(404).
        clock:     Optional clock; when given, the start time of every get_job
                   call is recorded in ``get_times``.
    """

    def __init__(
        self,
        *,
        create: Any = None,
        polls: list[Any] | None = None,
        generate: dict[str, Any] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.create_response = create if create is not None else {"name": "interactions/job-1"}
        self.polls = list(polls or [{"status": "in_progress"}])
        self.generate = generate or {}
        self.clock = clock
        # Call records for assertion
        self.create_calls: list[dict[str, Any]] = []
        self.get_calls: list[str] = []
        self.get_times: list[float] = []
        self.generate_calls: list[tuple[str, str]] = []
        self.closed = False

    async def create_job(self, input: str, agent: str | None = None, background: bool = True) -> Interaction:
        self.create_calls.append({"input": input, "agent": agent, "background": background})
        return _resolve(self.create_response)

    async def get_job(self, identifier: str) -> Interaction:
        self.get_calls.append(identifier)
        if self.clock is not None:
            self.get_times.append(self.clock())
        item = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        return _resolve(item)

    async def generate_text(self, prompt: str, model: str) -> str:
        self.generate_calls.append((prompt, model))
        response = self.generate.get(model, ApiError(f"model {model} not found", status_code=404))
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True

    @property
    def models_called(self) -> list[str]:
        return [model for _, model in self.generate_calls]


def _resolve(item: Any) -> Interaction:
    if isinstance(item, BaseException):
        raise item
    if isinstance(item, Interaction):
        return item
    return Interaction.model_validate(item)


# ─────────────────────────────────────────────────────────────────────────────
# FakeClock — deterministic time for the polling loop
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def synapse():
    """A fresh in-memory SynapseEventBus for each test."""
    return SynapseEventBus(persist=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api_key(monkeypatch):
    """A configured API key so nothing falls over on the credential check."""
    monkeypatch.setattr(settings, "gemini_api_key", "test-key")
    return "test-key"


@pytest.fixture
def trace_dir(tmp_path, monkeypatch):
    """Point persisted traces at a temp directory."""
    path = tmp_path / "traces"
    monkeypatch.setattr(settings, "trace_dir", path)
    return path


@pytest.fixture
def scripted():
    """Factory for ScriptedService — call it with the script for one test."""
    return ScriptedService
