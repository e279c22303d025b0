"""Centralised clock helpers — single source of truth for 'now'.

Wall-clock values feed report filenames and event timestamps; the monotonic
clock drives the polling budget. Tests patch or inject these instead of
calling time/datetime directly.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    """Milliseconds since the Unix epoch: 1771838400000"""
    return int(time.time() * 1000)


def monotonic() -> float:
    """Seconds from an arbitrary fixed point; never goes backwards."""
    return time.monotonic()
