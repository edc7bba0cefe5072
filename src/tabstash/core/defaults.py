"""Centralised default constants for tabstash.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Blob-store keys ──
SETTINGS_KEY: Final[str] = "userSettings"
SAVED_TABS_KEY: Final[str] = "savedTabs"
PARENT_CATEGORIES_KEY: Final[str] = "parentCategories"

# ── User settings ──
DEFAULT_REMOVE_TAB_AFTER_OPEN: Final[bool] = True
DEFAULT_EXCLUDE_PATTERNS: Final[tuple[str, ...]] = ("chrome-extension://", "chrome://")
DEFAULT_AUTO_DELETE_PERIOD: Final[str] = "never"

# ── Retention ──
_SECOND_MS: Final[int] = 1000
_MINUTE_MS: Final[int] = 60 * _SECOND_MS
_HOUR_MS: Final[int] = 60 * _MINUTE_MS
_DAY_MS: Final[int] = 24 * _HOUR_MS

RETENTION_MS: Final[dict[str, int]] = {
    "30sec": 30 * _SECOND_MS,
    "1min": _MINUTE_MS,
    "1hour": _HOUR_MS,
    "1day": _DAY_MS,
    "7days": 7 * _DAY_MS,
    "14days": 14 * _DAY_MS,
    "30days": 30 * _DAY_MS,
    "180days": 180 * _DAY_MS,
    "365days": 365 * _DAY_MS,
}

# Backdating offsets used by updateTabTimestamps so the next sweep evicts.
BACKDATE_MS: Final[dict[str, int]] = {
    "30sec": 40 * _SECOND_MS,
    "1min": 70 * _SECOND_MS,
}

# ── Scheduling ──
EXPIRY_ALARM_NAME: Final[str] = "checkExpiredTabs"
EXPIRY_ALARM_PERIOD_SECONDS: Final[float] = 30.0

# ── Drag & drop ──
DRAG_TTL_SECONDS: Final[float] = 10.0

# ── Paths ──
DEFAULT_STORE_PATH: Final[str] = "data/tabstash.json"
