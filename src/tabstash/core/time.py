"""Epoch-millisecond timestamps.

Persisted timestamps (``savedAt``) are integer milliseconds since the
Unix epoch, UTC.  Helpers here are the only place wall-clock time is read
so that callers can pass ``now`` explicitly in tests.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def format_ms(ms: int | None) -> str:
    """ISO-8601 rendering for logs and CLI output; ``"-"`` for ``None``."""
    if ms is None:
        return "-"
    return to_datetime(ms).isoformat(timespec="seconds")
