"""Shared fixtures for the tabstash test suite."""

from __future__ import annotations

import itertools
from typing import Callable

import pytest

from tabstash.core.store import MemoryBlobStore
from tabstash.core.types import Tab
from tabstash.tabs.service import TabStash

NOW = 1_750_000_000_000  # epoch ms, 2025-06-15


@pytest.fixture()
def now() -> int:
    return NOW


@pytest.fixture()
def ids() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"g{next(counter)}"


@pytest.fixture()
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture()
def stash(store: MemoryBlobStore, ids: Callable[[], str]) -> TabStash:
    return TabStash(store, clock=lambda: NOW, id_factory=ids)


@pytest.fixture()
def sample_tabs() -> list[Tab]:
    return [
        Tab(url="https://a.com/1", title="A"),
        Tab(url="https://a.com/2", title="A2"),
        Tab(url="https://b.org/docs/intro", title="B docs"),
    ]
