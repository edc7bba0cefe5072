"""Read/write boundary between the pure store functions and the blob store.

This is the only module that knows which blob-store key holds which
collection.  Each load returns a full snapshot; each commit writes full
collections in a single ``set`` call.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from tabstash.core.defaults import PARENT_CATEGORIES_KEY, SAVED_TABS_KEY
from tabstash.core.store import BlobStore
from tabstash.core.types import ParentCategory, TabGroup, dump_records

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def _parse_records(raw: Any, model: type[_M], key: str) -> list[_M]:
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("%s is not a list; treating as empty", key)
        return []
    records: list[_M] = []
    for item in raw:
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping invalid %s record: %s", key, exc.errors()[0]["msg"])
    return records


class Snapshot(BaseModel, frozen=True):
    groups: list[TabGroup]
    categories: list[ParentCategory]


class TabRepository:
    """Loads and commits ``savedTabs`` and ``parentCategories``."""

    def __init__(self, store: BlobStore) -> None:
        self._store = store

    async def load_groups(self) -> list[TabGroup]:
        data = await self._store.get([SAVED_TABS_KEY])
        return _parse_records(data.get(SAVED_TABS_KEY), TabGroup, SAVED_TABS_KEY)

    async def load_categories(self) -> list[ParentCategory]:
        data = await self._store.get([PARENT_CATEGORIES_KEY])
        return _parse_records(data.get(PARENT_CATEGORIES_KEY), ParentCategory, PARENT_CATEGORIES_KEY)

    async def load(self) -> Snapshot:
        """Both collections from one read."""
        data = await self._store.get([SAVED_TABS_KEY, PARENT_CATEGORIES_KEY])
        return Snapshot(
            groups=_parse_records(data.get(SAVED_TABS_KEY), TabGroup, SAVED_TABS_KEY),
            categories=_parse_records(
                data.get(PARENT_CATEGORIES_KEY), ParentCategory, PARENT_CATEGORIES_KEY
            ),
        )

    async def commit(
        self,
        *,
        groups: Sequence[TabGroup] | None = None,
        categories: Sequence[ParentCategory] | None = None,
    ) -> None:
        """Write whichever collections are given, in one ``set`` call."""
        items: dict[str, Any] = {}
        if groups is not None:
            items[SAVED_TABS_KEY] = dump_records(groups)
        if categories is not None:
            items[PARENT_CATEGORIES_KEY] = dump_records(categories)
        if items:
            await self._store.set(items)
