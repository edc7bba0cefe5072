"""Short-lived record of a URL dragged out of the saved-tabs page.

When the user drags a saved URL into the tab strip, the host reports
``urlDragStarted`` and then, separately, a new tab being created.  The
tracker remembers the dragged URL for a few seconds so the tab-created
event can be matched to it and consumed exactly once.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Callable

from tabstash.core.defaults import DRAG_TTL_SECONDS


def normalize_for_match(url: str) -> str:
    """Lower-case, trim and drop query and fragment for loose URL comparison."""
    return url.strip().lower().split("#", 1)[0].split("?", 1)[0]


def urls_match(a: str, b: str) -> bool:
    na, nb = normalize_for_match(a), normalize_for_match(b)
    if not na or not nb:
        return False
    return na == nb or na in nb or nb in na


@dataclass(frozen=True)
class DraggedUrl:
    url: str
    started_at: float
    consumed: bool = False

    def expired(self, now: float, ttl: float = DRAG_TTL_SECONDS) -> bool:
        return now - self.started_at >= ttl


class DragTracker:
    """Holds at most one :class:`DraggedUrl`, expiring after *ttl* seconds.

    Args:
        ttl: Seconds a drag stays matchable.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        ttl: float = DRAG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._current: DraggedUrl | None = None

    def start(self, url: str) -> DraggedUrl:
        self._current = DraggedUrl(url=url, started_at=self._clock())
        return self._current

    def pending(self) -> DraggedUrl | None:
        """The unconsumed, unexpired drag, if any.  Expired drags are dropped."""
        current = self._current
        if current is None:
            return None
        if current.consumed or current.expired(self._clock(), self._ttl):
            self._current = None
            return None
        return current

    def consume_if_matches(self, tab_url: str | None) -> DraggedUrl | None:
        """Consume and return the pending drag if *tab_url* matches it."""
        current = self.pending()
        if current is None or not tab_url or not urls_match(current.url, tab_url):
            return None
        self._current = None
        return replace(current, consumed=True)

    def clear(self) -> None:
        self._current = None
