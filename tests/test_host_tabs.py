"""Tests for tabstash.host.tabs save-window flows against a fake host."""

from __future__ import annotations

import asyncio

from tabstash.core.store import MemoryBlobStore
from tabstash.core.types import Tab
from tabstash.host.tabs import closable_tab_ids, save_current_tab, save_window
from tabstash.tabs.service import TabStash


class _FakeHost:
    def __init__(self, tabs: list[Tab], page_id: int | None = 99, fail_on: set[int] | None = None) -> None:
        self.tabs = tabs
        self.page_id = page_id
        self.fail_on = fail_on or set()
        self.closed: list[int] = []

    async def query_current_window(self) -> list[Tab]:
        return list(self.tabs)

    async def show_collection_page(self) -> int | None:
        return self.page_id

    async def close_tab(self, tab_id: int) -> None:
        if tab_id in self.fail_on:
            raise RuntimeError(f"tab {tab_id} is gone")
        self.closed.append(tab_id)


class _Notes:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.messages.append((title, message))


def _window() -> list[Tab]:
    return [
        Tab(id=1, url="https://a.com/1", title="A"),
        Tab(id=2, url="chrome://settings", title="Settings"),
        Tab(id=3, url="https://b.com/x", title="B"),
        Tab(id=99, url="https://a.com/1", title="dup"),
    ]


class TestClosableTabIds:
    def test_skips_excluded_and_kept(self) -> None:
        assert closable_tab_ids(_window(), ["chrome://"], keep_id=99) == [1, 3]

    def test_skips_tabs_without_id_or_url(self) -> None:
        tabs = [Tab(url="https://a.com/"), Tab(id=5), Tab(id=6, url="https://a.com/")]
        assert closable_tab_ids(tabs, [], keep_id=None) == [6]


class TestSaveWindow:
    def test_saves_notifies_and_closes(self, stash: TabStash, store: MemoryBlobStore) -> None:
        host = _FakeHost(_window())
        notes = _Notes()
        result = asyncio.run(save_window(stash, host, notes))

        domains = [g["domain"] for g in store.snapshot()["savedTabs"]]
        assert domains == ["https://a.com", "https://b.com"]
        assert result.outcome.saved_count == 2
        assert notes.messages == [("Tabs saved", "3 tab(s) saved. Closing tabs.")]
        assert host.closed == [1, 3]
        assert result.failed_ids == []

    def test_close_failure_does_not_stop_others(self, stash: TabStash) -> None:
        host = _FakeHost(_window(), page_id=None, fail_on={1})
        result = asyncio.run(save_window(stash, host))

        assert result.failed_ids == [1]
        assert result.closed_ids == [3, 99]


class TestSaveCurrentTab:
    def test_single_tab(self, stash: TabStash, store: MemoryBlobStore) -> None:
        notes = _Notes()
        outcome = asyncio.run(save_current_tab(stash, Tab(id=4, url="https://c.com/"), notes))
        assert outcome.saved_count == 1
        assert notes.messages == [("Tabs saved", "Current tab saved")]
        assert store.snapshot()["savedTabs"][0]["domain"] == "https://c.com"
