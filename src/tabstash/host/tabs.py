"""Host tab enumeration / window collaborator and the save-window flow.

The browser's tab API is outside the core.  :class:`TabHost` is the
minimal surface the save flows need; a notifier receives user-facing
summaries.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from pydantic import BaseModel, Field

from tabstash.core.types import Tab
from tabstash.tabs.domain import is_excluded
from tabstash.tabs.service import SaveOutcome, TabStash

logger = logging.getLogger(__name__)


class TabHost(Protocol):
    async def query_current_window(self) -> list[Tab]: ...

    async def show_collection_page(self) -> int | None:
        """Focus (or open and pin) the saved-tabs page; return its tab id."""
        ...

    async def close_tab(self, tab_id: int) -> None: ...


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class SaveWindowResult(BaseModel, frozen=True):
    outcome: SaveOutcome
    closed_ids: list[int] = Field(default_factory=list)
    failed_ids: list[int] = Field(default_factory=list)


def closable_tab_ids(
    tabs: Sequence[Tab],
    exclude_patterns: Sequence[str],
    keep_id: int | None,
) -> list[int]:
    """Ids of tabs to close after saving: non-excluded URLs, minus *keep_id*."""
    return [
        t.id for t in tabs
        if t.id is not None
        and t.id != keep_id
        and t.url
        and not is_excluded(t.url, exclude_patterns)
    ]


async def save_window(
    stash: TabStash,
    host: TabHost,
    notifier: Notifier | None = None,
) -> SaveWindowResult:
    """Save every tab of the current window, show the collection page, close the saved tabs.

    A tab that fails to close is logged and skipped; the rest still close.
    """
    settings = await stash.get_settings()
    all_tabs = await host.query_current_window()
    regular = [t for t in all_tabs if t.url and not is_excluded(t.url, settings.exclude_patterns)]
    logger.info("Saving %d of %d tab(s)", len(regular), len(all_tabs))

    outcome = await stash.save_tabs_with_auto_category(regular)
    if notifier is not None:
        notifier.notify("Tabs saved", f"{len(regular)} tab(s) saved. Closing tabs.")

    page_id = await host.show_collection_page()
    closed: list[int] = []
    failed: list[int] = []
    for tab_id in closable_tab_ids(all_tabs, settings.exclude_patterns, page_id):
        try:
            await host.close_tab(tab_id)
            closed.append(tab_id)
        except Exception as exc:
            logger.error("Could not close tab %d: %s", tab_id, exc)
            failed.append(tab_id)
    return SaveWindowResult(outcome=outcome, closed_ids=closed, failed_ids=failed)


async def save_current_tab(
    stash: TabStash,
    tab: Tab,
    notifier: Notifier | None = None,
) -> SaveOutcome:
    """Context-menu save of a single tab; the tab stays open."""
    outcome = await stash.save_tabs_with_auto_category([tab])
    if notifier is not None:
        notifier.notify("Tabs saved", "Current tab saved")
    return outcome
