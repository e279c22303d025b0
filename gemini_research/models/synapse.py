"""Synapse — in-process observability for research jobs.

Every lifecycle transition (job_submitted, poll_pending, poll_transient_error,
job_succeeded, job_failed, job_timed_out) and every plan-model fallback
produces a SynapseEvent. The SynapseEventBus keeps them in memory and, when
``persist`` is on, appends them to <trace_dir>/<correlation_id>.jsonl so
``gemini-research trace <job id>`` works after the process exits.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from gemini_research.config import settings
from gemini_research.utils.clock import now_utc

logger = structlog.get_logger().bind(component="synapse")


class SynapseEvent(BaseModel):
    """A single observable event.

    ``correlation_id`` is the job ID for controller events and a per-call ID
    for plan generation.
    """

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(description="Ties this event to one job or plan request")
    event_type: str = Field(
        description="Type: plan_start, model_fallback, plan_complete, plan_failed, "
        "job_submitted, poll_pending, poll_transient_error, job_succeeded, "
        "job_failed, job_timed_out"
    )
    source: str = Field(description="Component that emitted this event (e.g., 'job_controller')")
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str = Field(default="", description="Error message if this is an error event")
    elapsed_seconds: float = Field(default=0.0, description="Seconds since polling started, if applicable")
    timestamp: datetime = Field(default_factory=now_utc)


class SynapseTrace(BaseModel):
    """All events sharing one correlation_id, in timestamp order."""

    correlation_id: str
    events: list[SynapseEvent] = Field(default_factory=list)
    total_duration_ms: float = 0.0
    success: bool = True
    started_at: datetime | None = None
    completed_at: datetime | None = None


class SynapseEventBus:
    """In-memory event bus with optional JSONL persistence.

    Subclass and override ``emit`` to react to events as they happen — the
    CLI does this to surface transient poll errors in its spinner.
    """

    def __init__(self, trace_dir: Path | None = None, persist: bool = True) -> None:
        self._events: list[SynapseEvent] = []
        self._trace_dir = Path(trace_dir or settings.trace_dir).expanduser()
        self._persist = persist

    def emit(self, event: SynapseEvent) -> None:
        """Emit an event — stores in memory and appends to trace file."""
        self._events.append(event)
        if self._persist:
            self._write_to_file(event)

    def _write_to_file(self, event: SynapseEvent) -> None:
        try:
            self._trace_dir.mkdir(parents=True, exist_ok=True)
            trace_file = self._trace_dir / f"{event.correlation_id}.jsonl"
            with trace_file.open("a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")
        except OSError as e:
            # Tracing must never break a running job
            logger.warning("trace_write_failed", path=str(self._trace_dir), error=str(e))

    def get_trace(self, correlation_id: str) -> SynapseTrace:
        """Assemble a full trace — checks memory first, then disk."""
        events = [e for e in self._events if e.correlation_id == correlation_id]
        if not events:
            events = self._load_from_file(correlation_id)

        events.sort(key=lambda e: e.timestamp)
        trace = SynapseTrace(correlation_id=correlation_id, events=events)

        if events:
            trace.started_at = events[0].timestamp
            trace.completed_at = events[-1].timestamp
            total = (trace.completed_at - trace.started_at).total_seconds() * 1000
            trace.total_duration_ms = round(total, 2)
            trace.success = not any(
                e.event_type in ("job_failed", "job_timed_out") for e in events
            )

        return trace

    def _load_from_file(self, correlation_id: str) -> list[SynapseEvent]:
        trace_file = self._trace_dir / f"{correlation_id}.jsonl"
        if not trace_file.exists():
            return []
        events = []
        with trace_file.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(SynapseEvent.model_validate_json(line))
                except ValueError:
                    logger.warning("trace_line_skipped", correlation_id=correlation_id)
        return events

    def list_traces(self, limit: int = 20) -> list[str]:
        """List recent correlation IDs from persisted trace files (newest first)."""
        if not self._trace_dir.exists():
            return []
        files = sorted(
            self._trace_dir.glob("*.jsonl"),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        return [f.stem for f in files[:limit]]

    def events_of(self, event_type: str) -> list[SynapseEvent]:
        """In-memory events of one type, oldest first."""
        return [e for e in self._events if e.event_type == event_type]

    def clear(self) -> None:
        """Clear in-memory events (does not delete files)."""
        self._events.clear()

    @property
    def event_count(self) -> int:
        return len(self._events)
