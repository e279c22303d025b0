"""Core schemas — the remote Interaction, the local JobHandle, and poll results.

Interaction   — one research job as the Gemini Interactions API returns it
JobHandle     — immutable local reference to a submitted job
PollAttempt   — one classified round-trip while polling (never persisted)
ReportResult  — terminal outcome of JobController.run(): succeeded | failed | timed_out
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gemini_research.errors import SubmissionError
from gemini_research.utils.clock import now_utc


def last_segment(identifier: str) -> str:
    """'interactions/abc123' -> 'abc123'; bare IDs pass through unchanged."""
    return identifier.rsplit("/", 1)[-1]


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: str | None) -> "JobStatus":
        """Map a remote status string onto JobStatus, ignoring case.

        The API has been seen returning both "completed" and "COMPLETED".
        Anything unrecognised (in_progress, missing, ...) counts as pending.
        """
        if not raw:
            return cls.PENDING
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.PENDING


class JobState(str, Enum):
    """Controller lifecycle: created -> polling -> {succeeded, failed, timed_out}."""

    CREATED = "created"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT)


class PollOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    REMOTE_FAILURE = "remote_failure"
    TRANSIENT_ERROR = "transient_error"
    FATAL_ERROR = "fatal_error"


class InteractionOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class Interaction(BaseModel):
    """A research job as returned by POST/GET ``interactions``."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, description="Resource name, e.g. 'interactions/abc123'")
    id: str | None = Field(default=None, description="Bare interaction ID")
    status: str | None = Field(default=None, description="Remote status string, any casing")
    outputs: list[InteractionOutput] = Field(default_factory=list)
    error: Any = None

    @field_validator("outputs", mode="before")
    @classmethod
    def _null_outputs(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def job_status(self) -> JobStatus:
        return JobStatus.parse(self.status)

    @property
    def identifier(self) -> str | None:
        """Resource name if present, else the bare ID."""
        return self.name or self.id or None

    @property
    def report_text(self) -> str:
        """Text of the last output — earlier outputs are intermediate."""
        if not self.outputs:
            return ""
        return self.outputs[-1].text


class JobHandle(BaseModel):
    """Reference to a submitted job. Frozen: the ID never changes once assigned."""

    model_config = ConfigDict(frozen=True)

    id: str
    resource_name: str | None = None
    submitted_at: datetime = Field(default_factory=now_utc)

    @classmethod
    def from_interaction(cls, interaction: Interaction) -> "JobHandle":
        """Build a handle from a create response, preferring ``name`` over ``id``.

        Raises:
            SubmissionError: neither field is populated.
        """
        raw = interaction.identifier
        if not raw:
            raise SubmissionError("No interaction ID returned")
        job_id = last_segment(raw)
        if not job_id:
            raise SubmissionError(f"Malformed interaction identifier: {raw!r}")
        return cls(id=job_id, resource_name=interaction.name)


class PollAttempt(BaseModel):
    attempt: int
    elapsed_seconds: float
    outcome: PollOutcome
    status_code: int | None = None
    interaction: Interaction | None = None
    error: str = ""


class ReportResult(BaseModel):
    """Terminal outcome of a research job.

    Exactly one of three shapes:
        succeeded — ``report`` holds the final text (possibly empty)
        failed    — ``error`` holds the remote payload or ``{status, message}``
        timed_out — polling budget ran out; no report
    """

    state: JobState
    job_id: str
    report: str | None = None
    error: Any = None
    status_code: int | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0

    @field_validator("state")
    @classmethod
    def _terminal_only(cls, v: JobState) -> JobState:
        if not v.is_terminal:
            raise ValueError(f"ReportResult state must be terminal, got {v.value}")
        return v

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state is JobState.FAILED

    @property
    def timed_out(self) -> bool:
        return self.state is JobState.TIMED_OUT
