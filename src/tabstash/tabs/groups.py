"""Tab group collection operations.

Every function here is pure: it takes a full snapshot of the
``savedTabs`` collection and returns a new one.  Reading and writing the
blob store happens in :mod:`tabstash.tabs.repository`, called by the
orchestrator in :mod:`tabstash.tabs.service`.

Invariants maintained on every returned snapshot:

- ``domain`` is unique across groups.
- ``url`` values are unique within a group.
- No group has an empty ``urls`` list; emptied groups are dropped and
  their ids reported in ``removed_group_ids`` so the caller can cascade.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, Sequence

from pydantic import BaseModel, Field

from tabstash.core.defaults import DEFAULT_EXCLUDE_PATTERNS
from tabstash.core.errors import InvalidUrl
from tabstash.core.types import Tab, TabGroup, UrlEntry
from tabstash.tabs.domain import domain_key, is_excluded

logger = logging.getLogger(__name__)


def new_group_id() -> str:
    return str(uuid.uuid4())


class MergeResult(BaseModel, frozen=True):
    """Outcome of :func:`merge_tabs`."""

    groups: list[TabGroup]
    created_ids: list[str] = Field(default_factory=list, description="Groups created by this merge.")
    added_urls: dict[str, list[str]] = Field(
        default_factory=dict, description="Group id -> URLs appended by this merge."
    )
    removed_group_ids: list[str] = Field(
        default_factory=list, description="Duplicate-domain groups folded into an earlier group."
    )
    coalesced_ids: list[str] = Field(
        default_factory=list, description="Groups that absorbed a folded duplicate."
    )
    skipped: list[str] = Field(default_factory=list, description="Invalid or excluded URLs.")

    @property
    def added_count(self) -> int:
        return sum(len(urls) for urls in self.added_urls.values())


class RemovalResult(BaseModel, frozen=True):
    """Outcome of :func:`remove_url` / :func:`remove_group`."""

    groups: list[TabGroup]
    removed_group_ids: list[str] = Field(default_factory=list)
    changed: bool = False


def coalesce_duplicate_domains(groups: Sequence[TabGroup]) -> tuple[list[TabGroup], list[str]]:
    """Fold groups sharing a domain into the first one seen.

    Two saves racing on stale snapshots can commit two groups for the
    same domain.  The earliest group keeps its id and settings; URLs of
    later duplicates are appended (deduplicated) and unset optional
    fields are filled from them.

    Returns:
        ``(groups, folded_ids)`` where *folded_ids* are the ids of the
        dropped duplicates.
    """
    by_domain: dict[str, TabGroup] = {}
    folded: list[str] = []
    for group in groups:
        first = by_domain.get(group.domain)
        if first is None:
            by_domain[group.domain] = group
            continue
        seen = {e.url for e in first.urls}
        extra = [e for e in group.urls if e.url not in seen]
        update: dict[str, object] = {"urls": [*first.urls, *extra]}
        for name in ("parent_category_id", "sub_categories", "category_keywords", "saved_at"):
            if getattr(first, name) is None and getattr(group, name) is not None:
                update[name] = getattr(group, name)
        by_domain[group.domain] = first.model_copy(update=update)
        folded.append(group.id)
        logger.warning("Folded duplicate group %s into %s for %s", group.id, first.id, group.domain)
    return list(by_domain.values()), folded


def merge_tabs(
    groups: Sequence[TabGroup],
    tabs: Iterable[Tab],
    *,
    exclude_patterns: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS,
    id_factory: Callable[[], str] = new_group_id,
) -> MergeResult:
    """Merge incoming *tabs* into the *groups* snapshot.

    Each tab is keyed by :func:`~tabstash.tabs.domain.domain_key`.  A
    missing group is created with a fresh id; the tab's ``{url, title}``
    is appended unless that exact URL is already in the group.  Tabs with
    no URL, an excluded URL prefix or an unparseable URL are skipped
    without aborting the batch.

    Args:
        groups: Current ``savedTabs`` snapshot.
        tabs: Incoming tabs, in order.
        exclude_patterns: URL prefixes that are never grouped.
        id_factory: Generates ids for new groups.

    Returns:
        A :class:`MergeResult`; ``groups`` preserves existing order with
        new domains appended.
    """
    patterns = list(exclude_patterns)
    current, folded = coalesce_duplicate_domains(groups)
    folded_domains = {g.domain for g in groups if g.id in folded}
    by_domain: dict[str, TabGroup] = {g.domain: g for g in current}
    created: list[str] = []
    added: dict[str, list[str]] = {}
    skipped: list[str] = []

    for tab in tabs:
        if not tab.url:
            continue
        if is_excluded(tab.url, patterns):
            skipped.append(tab.url)
            continue
        try:
            domain = domain_key(tab.url)
        except InvalidUrl as exc:
            logger.warning("Skipping tab: %s", exc)
            skipped.append(tab.url)
            continue

        group = by_domain.get(domain)
        if group is None:
            group = TabGroup(id=id_factory(), domain=domain)
            created.append(group.id)
        if any(e.url == tab.url for e in group.urls):
            continue
        entry = UrlEntry(url=tab.url, title=tab.title or "")
        by_domain[domain] = group.model_copy(update={"urls": [*group.urls, entry]})
        added.setdefault(group.id, []).append(tab.url)

    return MergeResult(
        groups=list(by_domain.values()),
        created_ids=created,
        added_urls=added,
        removed_group_ids=folded,
        coalesced_ids=[g.id for g in current if g.domain in folded_domains],
        skipped=skipped,
    )


def remove_url(groups: Sequence[TabGroup], url: str) -> RemovalResult:
    """Drop the entry for *url*; drop its group too if it becomes empty.

    Removing a URL that is not stored is a no-op.
    """
    updated: list[TabGroup] = []
    removed_ids: list[str] = []
    changed = False
    for group in groups:
        remaining = [e for e in group.urls if e.url != url]
        if len(remaining) == len(group.urls):
            updated.append(group)
            continue
        changed = True
        if remaining:
            updated.append(group.model_copy(update={"urls": remaining}))
        else:
            removed_ids.append(group.id)
    return RemovalResult(groups=updated, removed_group_ids=removed_ids, changed=changed)


def remove_group(groups: Sequence[TabGroup], group_id: str) -> RemovalResult:
    """Drop the group with *group_id* entirely.  Unknown ids are a no-op."""
    updated = [g for g in groups if g.id != group_id]
    changed = len(updated) != len(groups)
    return RemovalResult(
        groups=updated,
        removed_group_ids=[group_id] if changed else [],
        changed=changed,
    )


def stamp_save_time(groups: Sequence[TabGroup], timestamp: int) -> list[TabGroup]:
    """Set ``saved_at`` on every group (normal saves and operator backdating)."""
    return [g.model_copy(update={"saved_at": timestamp}) for g in groups]


def find_group(groups: Sequence[TabGroup], *, group_id: str | None = None, domain: str | None = None) -> TabGroup | None:
    for group in groups:
        if group_id is not None and group.id == group_id:
            return group
        if domain is not None and group.domain == domain:
            return group
    return None
