"""Periodic timer collaborator and expiry-alarm wiring.

The host timer is best-effort and at-least-once: firings may be delayed,
coalesced or skipped.  The expiry sweep is idempotent, so that is
harmless.  Hosts without a timer degrade to a single immediate check.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from pydantic import BaseModel

from tabstash.core.defaults import EXPIRY_ALARM_NAME, EXPIRY_ALARM_PERIOD_SECONDS
from tabstash.core.errors import SchedulerUnavailable, TabStashError
from tabstash.core.time import now_ms
from tabstash.tabs.service import TabStash

logger = logging.getLogger(__name__)

AlarmCallback = Callable[[], Awaitable[object]]


class AlarmInfo(BaseModel, frozen=True):
    name: str
    period_seconds: float
    scheduled_time: int  # epoch ms of the next firing


class Scheduler(Protocol):
    def create(self, name: str, period_seconds: float, callback: AlarmCallback) -> AlarmInfo: ...

    def get(self, name: str) -> AlarmInfo | None: ...

    def clear(self, name: str) -> bool: ...


class AsyncioScheduler:
    """Named periodic alarms running as tasks on the current event loop.

    A callback that raises is logged and the alarm keeps firing.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._alarms: dict[str, AlarmInfo] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def create(self, name: str, period_seconds: float, callback: AlarmCallback) -> AlarmInfo:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerUnavailable("no running event loop") from exc
        self.clear(name)
        info = AlarmInfo(
            name=name,
            period_seconds=period_seconds,
            scheduled_time=self._clock() + int(period_seconds * 1000),
        )
        self._alarms[name] = info
        self._tasks[name] = loop.create_task(self._run(info, callback), name=f"alarm:{name}")
        return info

    def get(self, name: str) -> AlarmInfo | None:
        return self._alarms.get(name)

    def clear(self, name: str) -> bool:
        task = self._tasks.pop(name, None)
        self._alarms.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    def clear_all(self) -> None:
        for name in list(self._tasks):
            self.clear(name)

    async def _run(self, info: AlarmInfo, callback: AlarmCallback) -> None:
        step_ms = int(info.period_seconds * 1000)
        while True:
            await asyncio.sleep(info.period_seconds)
            info = info.model_copy(update={"scheduled_time": self._clock() + step_ms})
            self._alarms[info.name] = info
            logger.debug("Alarm fired: %s", info.name)
            try:
                await callback()
            except Exception:
                logger.exception("Alarm %s callback failed", info.name)


async def run_expiry_check(stash: TabStash) -> None:
    """One sweep; failures are logged so the host loop stays responsive."""
    try:
        await stash.check_and_remove_expired_tabs()
    except TabStashError as exc:
        logger.error("Expiry check failed: %s", exc)


async def setup_expiry_alarm(
    stash: TabStash,
    scheduler: Scheduler | None,
    *,
    period_seconds: float = EXPIRY_ALARM_PERIOD_SECONDS,
) -> AlarmInfo | None:
    """(Re)create the periodic expiry alarm and run a first check.

    An existing alarm is cleared first.  Without a usable scheduler the
    first check still runs and ``None`` is returned.
    """
    info: AlarmInfo | None = None
    try:
        if scheduler is None:
            raise SchedulerUnavailable("no timer API on this host")
        if scheduler.get(EXPIRY_ALARM_NAME) is not None:
            scheduler.clear(EXPIRY_ALARM_NAME)
        info = scheduler.create(
            EXPIRY_ALARM_NAME, period_seconds, lambda: run_expiry_check(stash)
        )
        logger.info("Expiry alarm every %.0fs", period_seconds)
    except SchedulerUnavailable as exc:
        logger.error("Periodic expiry disabled: %s", exc)
    await run_expiry_check(stash)
    return info


async def startup(stash: TabStash, scheduler: Scheduler | None) -> AlarmInfo | None:
    """Background start-up: migrate parent categories, then arm the expiry alarm."""
    try:
        await stash.migrate_parent_categories_to_domain_names()
    except TabStashError as exc:
        logger.error("Parent category migration failed: %s", exc)
    return await setup_expiry_alarm(stash, scheduler)
