"""Structured logging configuration using structlog.

Log lines go to stderr. stdout belongs to the CLI's own output (plans,
report paths), which users pipe and redirect.
"""

import sys

import structlog

from gemini_research.config import settings

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}


def setup_logging() -> None:
    """Configure structlog from ``settings.log_level`` / ``settings.log_format``.

    ``log_format="json"`` emits one JSON object per line; anything else uses
    the console renderer, coloured only when stderr is a terminal.
    """
    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(settings.log_level.lower(), 30)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
