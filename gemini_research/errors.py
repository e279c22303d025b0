"""Exception hierarchy for gemini-research.

ConfigError      — missing credential or bad settings; the CLI refuses to start.
ApiError         — any failed call to the Gemini API. ``status_code`` is the
                   HTTP status, or None for network-level failures.
SubmissionError  — a research job could not be created or came back without
                   an identifier. Terminal, never retried.

Poll-time failures are not exceptions: JobController classifies them into
PollOutcome values and folds them into a ReportResult.
"""

from __future__ import annotations


class GeminiResearchError(Exception):
    """Base class for every error raised by gemini-research."""


class ConfigError(GeminiResearchError):
    """Configuration is missing or invalid."""


class ApiError(GeminiResearchError):
    """A Gemini API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        """4xx — retrying the same request will not help."""
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_model_unavailable(self) -> bool:
        """404 or any 5xx — worth trying a different model."""
        if self.status_code is None:
            return False
        return self.status_code == 404 or self.status_code >= 500

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code!r}, message={self.message!r})"


class SubmissionError(GeminiResearchError):
    """Creating the research job failed."""
