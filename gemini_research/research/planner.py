"""PlanGenerator — turns a free-text topic into a research plan.

The plan is drafted by a text model before the expensive research job is
submitted. Candidate models are tried in order; moving to the next one only
happens when the current one looks unavailable (404 or 5xx). Whatever goes
wrong, ``generate`` hands back the raw topic so the job can still run.

Usage::

    planner = PlanGenerator(client, synapse)
    plan = await planner.generate("solid-state battery supply chain")
    handle = await controller.submit(build_job_input(plan))
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

import structlog

from gemini_research.config import settings
from gemini_research.errors import ApiError
from gemini_research.models.synapse import SynapseEvent, SynapseEventBus
from gemini_research.tools.remote import RemoteService

logger = structlog.get_logger().bind(component="plan_generator")

_PLAN_PROMPT = """\
Create a detailed research plan for: "{topic}".
The plan should break down the research into key areas and questions.
Keep it concise but comprehensive enough for an autonomous agent."""

_JOB_INPUT = "Execute the following research plan:\n\n{plan}"


def escape_topic(topic: str) -> str:
    """Escape backslashes and double quotes so the topic stays inside its quotes."""
    return topic.replace("\\", "\\\\").replace('"', '\\"')


def build_plan_prompt(topic: str) -> str:
    return _PLAN_PROMPT.format(topic=escape_topic(topic))


def build_job_input(plan: str) -> str:
    """Wrap a plan (or raw topic) as the research agent's instruction."""
    return _JOB_INPUT.format(plan=plan)


class PlanGenerator:
    """Drafts research plans with an ordered model-fallback chain.

    Args:
        service: RemoteService providing ``generate_text``.
        synapse: Optional event bus; receives plan_* and model_fallback events.
        models:  Candidate models, tried in order. Defaults to
                 ``(settings.plan_model, settings.fallback_model)``.
    """

    def __init__(
        self,
        service: RemoteService,
        synapse: SynapseEventBus | None = None,
        models: Sequence[str] | None = None,
    ) -> None:
        self._service = service
        self._synapse = synapse
        self.models: tuple[str, ...] = tuple(
            models if models is not None else (settings.plan_model, settings.fallback_model)
        )
        if not self.models:
            raise ValueError("PlanGenerator needs at least one model")

    async def generate(self, topic: str) -> str:
        """Return a research plan for *topic*, or *topic* itself on any failure."""
        correlation_id = f"plan-{uuid.uuid4().hex[:8]}"
        self._emit(correlation_id, "plan_start", payload={"topic": topic[:200]})
        try:
            plan = await self._generate_with_fallback(build_plan_prompt(topic), correlation_id)
        except Exception as e:
            logger.warning("plan_generation_failed", error=str(e), fallback="raw_topic")
            self._emit(correlation_id, "plan_failed", error=str(e))
            return topic

        if not plan or not plan.strip():
            logger.warning("plan_generation_empty", fallback="raw_topic")
            self._emit(correlation_id, "plan_failed", error="empty plan")
            return topic

        self._emit(correlation_id, "plan_complete", payload={"chars": len(plan)})
        return plan

    async def _generate_with_fallback(self, prompt: str, correlation_id: str) -> str:
        """Try each model once. Only a model-unavailable error moves to the next."""
        for model, next_model in zip(self.models, self.models[1:]):
            try:
                return await self._service.generate_text(prompt, model)
            except ApiError as e:
                if not e.is_model_unavailable:
                    raise
                logger.warning(
                    "model_fallback",
                    failed_model=model,
                    next_model=next_model,
                    status_code=e.status_code,
                )
                self._emit(
                    correlation_id,
                    "model_fallback",
                    payload={"from": model, "to": next_model, "status_code": e.status_code},
                    error=e.message,
                )
        return await self._service.generate_text(prompt, self.models[-1])

    def _emit(self, correlation_id: str, event_type: str, payload: dict | None = None, error: str = "") -> None:
        if self._synapse is None:
            return
        self._synapse.emit(SynapseEvent(
            correlation_id=correlation_id,
            event_type=event_type,
            source="plan_generator",
            payload=payload or {},
            error=error,
        ))
