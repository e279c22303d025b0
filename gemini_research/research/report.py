"""Report persistence — topic slug + timestamp filenames, UTF-8 Markdown."""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from gemini_research.config import settings
from gemini_research.utils.clock import epoch_millis

logger = structlog.get_logger().bind(component="report")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

UNTITLED_SLUG = "untitled-research"


def slugify(topic: str, max_length: int | None = None) -> str:
    """'What is RISC-V?' -> 'what-is-risc-v'. Empty results become 'untitled-research'."""
    limit = settings.slug_max_length if max_length is None else max_length
    slug = _NON_ALNUM.sub("-", topic.lower()).strip("-")[:limit]
    return slug or UNTITLED_SLUG


def report_filename(topic: str, timestamp_ms: int | None = None) -> str:
    stamp = epoch_millis() if timestamp_ms is None else timestamp_ms
    return f"report-{slugify(topic)}-{stamp}.md"


def save_report(report: str, topic: str, directory: Path | str | None = None) -> Path:
    """Write *report* next to its siblings and return the path written."""
    target_dir = Path(directory if directory is not None else settings.report_dir).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / report_filename(topic)
    path.write_text(report, encoding="utf-8")
    logger.info("report_saved", path=str(path), chars=len(report))
    return path
