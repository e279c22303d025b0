"""JobController — submit a research job and poll it to a terminal result.

Lifecycle::

    created ──submit──▶ polling ──▶ succeeded   (status completed; last output is the report)
                          ▲  │  ──▶ failed      (status failed, or a 4xx while fetching)
                          └──┘  ──▶ timed_out   (wall-clock budget spent)
                  pending / transient error

Each tick: check the budget, sleep the fixed interval, fetch once, classify,
transition. The budget check always comes first so the last fetch starts no
later than ``timeout + poll_interval`` after polling began.

Transient failures (network errors, 5xx, anything without a status) are
logged and emitted as ``poll_transient_error`` events, then retried on the
next tick. Nothing raised by the service escapes ``run``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from gemini_research.config import settings
from gemini_research.errors import ApiError, SubmissionError
from gemini_research.models.schemas import (
    Interaction,
    JobHandle,
    JobState,
    JobStatus,
    PollAttempt,
    PollOutcome,
    ReportResult,
)
from gemini_research.models.synapse import SynapseEvent, SynapseEventBus
from gemini_research.tools.remote import RemoteService
from gemini_research.utils.clock import monotonic

logger = structlog.get_logger().bind(component="job_controller")

# Single transition table for the polling state.
_TRANSITIONS: dict[PollOutcome, JobState] = {
    PollOutcome.SUCCESS: JobState.SUCCEEDED,
    PollOutcome.REMOTE_FAILURE: JobState.FAILED,
    PollOutcome.FATAL_ERROR: JobState.FAILED,
    PollOutcome.PENDING: JobState.POLLING,
    PollOutcome.TRANSIENT_ERROR: JobState.POLLING,
}


def next_state(outcome: PollOutcome) -> JobState:
    """State reached from ``polling`` after one classified attempt."""
    return _TRANSITIONS[outcome]


def classify_interaction(interaction: Interaction) -> PollOutcome:
    status = interaction.job_status
    if status is JobStatus.COMPLETED:
        return PollOutcome.SUCCESS
    if status is JobStatus.FAILED:
        return PollOutcome.REMOTE_FAILURE
    return PollOutcome.PENDING


def classify_error(error: BaseException) -> PollOutcome:
    """4xx is fatal. Network errors, 5xx and unknown failures are transient."""
    if isinstance(error, ApiError) and error.is_client_error:
        return PollOutcome.FATAL_ERROR
    return PollOutcome.TRANSIENT_ERROR


class JobController:
    """Owns one research job from submission to terminal result.

    Args:
        service: RemoteService used for ``create_job`` / ``get_job``.
        synapse: Optional event bus for lifecycle events (correlation_id = job ID).
        agent:   Research agent name; defaults to ``settings.deep_research_agent``.
        clock:   Monotonic seconds source. Injected in tests.
        sleep:   Coroutine used between polls. Injected in tests.
    """

    def __init__(
        self,
        service: RemoteService,
        synapse: SynapseEventBus | None = None,
        *,
        agent: str | None = None,
        clock: Callable[[], float] = monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._service = service
        self._synapse = synapse
        self.agent = agent or settings.deep_research_agent
        self._clock = clock
        self._sleep = sleep
        self.state = JobState.CREATED

    # ── Submission ────────────────────────────────────────────────────────

    async def submit(self, input: str) -> JobHandle:
        """Create the remote job and return its handle.

        Raises:
            SubmissionError: the remote call failed, or the response had
                neither a resource name nor an ID. Never retried.
        """
        try:
            interaction = await self._service.create_job(input, agent=self.agent, background=True)
        except ApiError as e:
            logger.error("job_submit_failed", status_code=e.status_code, error=e.message)
            raise SubmissionError(f"Failed to start research: {e.message}") from e

        handle = JobHandle.from_interaction(interaction)
        logger.info("job_submitted", job_id=handle.id, resource_name=handle.resource_name)
        self._emit(handle.id, "job_submitted", payload={
            "resource_name": handle.resource_name,
            "agent": self.agent,
            "status": interaction.status,
        })
        return handle

    # ── Polling ───────────────────────────────────────────────────────────

    async def run(
        self,
        handle: JobHandle,
        poll_interval: float | None = None,
        timeout: float | None = None,
    ) -> ReportResult:
        """Poll *handle* until it completes, fails or the budget runs out.

        Args:
            handle:        Handle returned by ``submit``.
            poll_interval: Seconds between polls (default from settings).
            timeout:       Wall-clock budget in seconds (default from settings).

        Returns:
            ReportResult in state succeeded, failed or timed_out.
        """
        interval = settings.poll_interval_seconds if poll_interval is None else poll_interval
        budget = settings.timeout_seconds if timeout is None else timeout

        self.state = JobState.POLLING
        started = self._clock()
        attempts = 0
        logger.info("polling_started", job_id=handle.id, poll_interval=interval, timeout=budget)

        while True:
            elapsed = self._clock() - started
            if elapsed > budget:
                return self._finish(ReportResult(
                    state=JobState.TIMED_OUT,
                    job_id=handle.id,
                    attempts=attempts,
                    elapsed_seconds=elapsed,
                ))

            await self._sleep(interval)
            attempts += 1
            attempt = await self._poll_once(handle, attempts, started)

            self.state = next_state(attempt.outcome)
            if self.state is JobState.POLLING:
                self._note_retry(handle, attempt)
                continue
            return self._finish(self._result_from(handle, attempt))

    async def _poll_once(self, handle: JobHandle, attempt: int, started: float) -> PollAttempt:
        """One fetch, classified. Never raises."""
        try:
            interaction = await self._service.get_job(handle.id)
        except Exception as e:
            status_code = e.status_code if isinstance(e, ApiError) else None
            return PollAttempt(
                attempt=attempt,
                elapsed_seconds=self._clock() - started,
                outcome=classify_error(e),
                status_code=status_code,
                error=e.message if isinstance(e, ApiError) else f"{type(e).__name__}: {e}",
            )
        return PollAttempt(
            attempt=attempt,
            elapsed_seconds=self._clock() - started,
            outcome=classify_interaction(interaction),
            interaction=interaction,
        )

    def _result_from(self, handle: JobHandle, attempt: PollAttempt) -> ReportResult:
        common = {
            "job_id": handle.id,
            "attempts": attempt.attempt,
            "elapsed_seconds": attempt.elapsed_seconds,
        }
        if attempt.outcome is PollOutcome.SUCCESS:
            assert attempt.interaction is not None
            return ReportResult(
                state=JobState.SUCCEEDED, report=attempt.interaction.report_text, **common
            )
        if attempt.outcome is PollOutcome.REMOTE_FAILURE:
            assert attempt.interaction is not None
            payload = attempt.interaction.error
            return ReportResult(
                state=JobState.FAILED,
                error=payload if payload is not None else "Unknown error",
                **common,
            )
        return ReportResult(
            state=JobState.FAILED,
            error={"status": attempt.status_code, "message": attempt.error},
            status_code=attempt.status_code,
            **common,
        )

    def _note_retry(self, handle: JobHandle, attempt: PollAttempt) -> None:
        if attempt.outcome is PollOutcome.TRANSIENT_ERROR:
            logger.warning(
                "poll_transient_error",
                job_id=handle.id,
                attempt=attempt.attempt,
                status_code=attempt.status_code,
                error=attempt.error,
            )
            self._emit(
                handle.id,
                "poll_transient_error",
                payload={"attempt": attempt.attempt, "status_code": attempt.status_code},
                error=attempt.error,
                elapsed=attempt.elapsed_seconds,
            )
            return

        status = attempt.interaction.status if attempt.interaction else None
        logger.debug("poll_pending", job_id=handle.id, attempt=attempt.attempt, status=status)
        self._emit(
            handle.id,
            "poll_pending",
            payload={"attempt": attempt.attempt, "status": status},
            elapsed=attempt.elapsed_seconds,
        )

    def _finish(self, result: ReportResult) -> ReportResult:
        self.state = result.state
        event_type = {
            JobState.SUCCEEDED: "job_succeeded",
            JobState.FAILED: "job_failed",
            JobState.TIMED_OUT: "job_timed_out",
        }[result.state]

        log = logger.info if result.succeeded else logger.error
        log(
            event_type,
            job_id=result.job_id,
            attempts=result.attempts,
            elapsed_seconds=round(result.elapsed_seconds, 2),
            status_code=result.status_code,
        )
        payload = {"attempts": result.attempts}
        if result.report is not None:
            payload["report_chars"] = len(result.report)
        self._emit(
            result.job_id,
            event_type,
            payload=payload,
            error="" if result.error is None else str(result.error),
            elapsed=result.elapsed_seconds,
        )
        return result

    def _emit(
        self,
        job_id: str,
        event_type: str,
        payload: dict | None = None,
        error: str = "",
        elapsed: float = 0.0,
    ) -> None:
        if self._synapse is None:
            return
        self._synapse.emit(SynapseEvent(
            correlation_id=job_id,
            event_type=event_type,
            source="job_controller",
            payload=payload or {},
            error=error,
            elapsed_seconds=elapsed,
        ))
