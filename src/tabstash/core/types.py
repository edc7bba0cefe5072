"""Core data contracts: tab groups, keyword rules, parent categories and settings.

All persisted records serialize with the camelCase field names used by
the blob store (``savedTabs``, ``parentCategoryId``, ``domainNames`` ...).
Python code uses snake_case attributes; pass ``by_alias=True`` (or use
:func:`dump_records`) when writing back to storage.

Records are frozen.  Store operations never mutate a snapshot in place;
they return new records via ``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Final, Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tabstash.core.defaults import (
    DEFAULT_AUTO_DELETE_PERIOD,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_REMOVE_TAB_AFTER_OPEN,
)


class RetentionPeriod(StrEnum):
    """Retention buckets accepted for ``autoDeletePeriod``.

    ``SEC_30`` exists for manual testing of the eviction path.
    Unrecognized labels behave as ``NEVER``.
    """

    SEC_30 = "30sec"
    MIN_1 = "1min"
    HOUR_1 = "1hour"
    DAY_1 = "1day"
    DAYS_7 = "7days"
    DAYS_14 = "14days"
    DAYS_30 = "30days"
    DAYS_180 = "180days"
    DAYS_365 = "365days"
    NEVER = "never"


RETENTION_LABELS: Final[frozenset[str]] = frozenset(RetentionPeriod)


class _StoredModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class UrlEntry(_StoredModel):
    """One saved URL inside a :class:`TabGroup`."""

    url: str
    title: str = ""
    sub_category: str | None = Field(default=None, description="Keyword-rule classification.")
    saved_at: int | None = Field(default=None, description="Epoch ms when this entry was added.")


class SubCategoryKeyword(_StoredModel):
    """Keyword rule: a URL whose url or title contains any keyword belongs to *sub_category*."""

    sub_category: str = Field(min_length=1)
    keywords: list[str] = Field(default_factory=list)


class TabGroup(_StoredModel):
    """All saved URLs sharing one ``scheme://host`` key.

    ``domain`` is the natural merge key and is unique across the
    collection; ``id`` is generated once and never reused.
    """

    id: str
    domain: str
    urls: list[UrlEntry] = Field(default_factory=list)
    parent_category_id: str | None = None
    sub_categories: list[str] | None = None
    category_keywords: list[SubCategoryKeyword] | None = None
    saved_at: int | None = Field(default=None, description="Epoch ms; drives expiration.")


class ParentCategory(_StoredModel):
    """User-defined category spanning several domains.

    ``domains`` holds TabGroup ids and goes stale as groups are deleted.
    ``domain_names`` holds normalized domain strings and is the durable
    record of which domains belong here.
    """

    id: str
    name: str
    domains: list[str] = Field(default_factory=list)
    domain_names: list[str] = Field(default_factory=list)


class UserSettings(_StoredModel):
    remove_tab_after_open: bool = DEFAULT_REMOVE_TAB_AFTER_OPEN
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    auto_delete_period: str = DEFAULT_AUTO_DELETE_PERIOD


class Tab(_StoredModel):
    """A browser tab as reported by the host tab-enumeration API."""

    id: int | None = None
    url: str | None = None
    title: str | None = None


def dump_records(records: Iterable[BaseModel]) -> list[dict[str, Any]]:
    """Serialize *records* to the camelCase JSON shape used in the blob store."""
    return [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in records]
