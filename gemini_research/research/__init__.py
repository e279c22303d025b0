"""gemini-research core — plan generation and the research job lifecycle.

Architecture:
    PlanGenerator  — topic -> research plan, with primary/secondary model fallback
    JobController  — submit -> poll (fixed interval, wall-clock budget) -> ReportResult
    save_report    — persist the final text as report-<slug>-<millis>.md

CLI surface (wired in gemini_research.main):
    gemini-research run "<topic>"
    gemini-research plan "<topic>"
    gemini-research status <id>
    gemini-research trace <id>
"""

from .controller import JobController, classify_error, classify_interaction, next_state
from .planner import PlanGenerator, build_job_input
from .report import save_report, slugify

__all__ = [
    "JobController",
    "PlanGenerator",
    "build_job_input",
    "classify_error",
    "classify_interaction",
    "next_state",
    "save_report",
    "slugify",
]
