"""Retention policy and eviction of stale tab groups.

Expiration is per group: a group expires when its ``saved_at`` is older
than the retention period.  Per-entry ``saved_at`` values are kept for
display only.  A group without ``saved_at`` is never treated as
infinitely old; the sweep backfills it with the current time instead
(or the cutoff, if that lies in the future, so a re-sweep keeps it).

:func:`sweep` is idempotent and order-independent, so missed or
duplicate timer firings are harmless.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel, Field

from tabstash.core.defaults import BACKDATE_MS, RETENTION_MS
from tabstash.core.time import format_ms, now_ms
from tabstash.core.types import TabGroup

logger = logging.getLogger(__name__)


class SweepResult(BaseModel, frozen=True):
    kept: list[TabGroup]
    evicted: list[TabGroup] = Field(default_factory=list)
    backfilled_ids: list[str] = Field(default_factory=list)

    @property
    def evicted_ids(self) -> list[str]:
        return [g.id for g in self.evicted]

    @property
    def changed(self) -> bool:
        return bool(self.evicted or self.backfilled_ids)


class TimeRemaining(BaseModel, frozen=True):
    """Remaining lifetime of a group; both fields ``None`` when it never expires."""

    time_remaining: int | None = None
    expiration_time: int | None = None


def expiration_period_ms(label: str | None) -> int | None:
    """Retention duration for *label*; ``None`` for ``"never"`` or unknown labels."""
    if not label:
        return None
    return RETENTION_MS.get(label)


def compute_cutoff(label: str | None, now: int | None = None) -> int | None:
    """Groups saved before the returned timestamp are expired.

    Returns:
        Epoch ms cutoff, or ``None`` when eviction is disabled.
    """
    period = expiration_period_ms(label)
    if period is None:
        return None
    return (now_ms() if now is None else now) - period


def sweep(groups: Sequence[TabGroup], cutoff: int, now: int | None = None) -> SweepResult:
    """Partition *groups* into kept and evicted.

    Args:
        groups: Current ``savedTabs`` snapshot.
        cutoff: From :func:`compute_cutoff`.
        now: Timestamp used to backfill groups lacking ``saved_at``.
    """
    stamp = now_ms() if now is None else now
    kept: list[TabGroup] = []
    evicted: list[TabGroup] = []
    backfilled: list[str] = []
    for group in groups:
        if group.saved_at is None:
            kept.append(group.model_copy(update={"saved_at": max(stamp, cutoff)}))
            backfilled.append(group.id)
        elif group.saved_at < cutoff:
            logger.debug(
                "Expired: %s saved_at=%s (%d urls)",
                group.domain, format_ms(group.saved_at), len(group.urls),
            )
            evicted.append(group)
        else:
            kept.append(group)
    return SweepResult(kept=kept, evicted=evicted, backfilled_ids=backfilled)


def time_remaining(saved_at: int | None, label: str | None, now: int | None = None) -> TimeRemaining:
    """Milliseconds until a group saved at *saved_at* expires under *label*.

    The result may be negative for an already-expired group awaiting the
    next sweep.
    """
    period = expiration_period_ms(label)
    if period is None or not saved_at:
        return TimeRemaining()
    expiration = saved_at + period
    current = now_ms() if now is None else now
    return TimeRemaining(time_remaining=expiration - current, expiration_time=expiration)


def backdated_timestamp(label: str | None, now: int | None = None) -> int:
    """Timestamp that makes the next sweep under *label* evict everything.

    Only the short test periods are backdated; any other label yields *now*.
    """
    current = now_ms() if now is None else now
    return current - BACKDATE_MS.get(label or "", 0)
