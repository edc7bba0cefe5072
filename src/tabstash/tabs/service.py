"""Orchestrator: saves, removals, expiration and the cascades between stores.

:class:`TabStash` composes the pure store functions with the
blob-store boundary.  Every public coroutine follows the same shape:
read full snapshots, run pure functions, write full collections.  No
store is awaited between computing a new snapshot and committing it,
so within one call the merge, classify, stamp and commit steps cannot
interleave with another handler.

Across calls the model is last-writer-wins: two handlers racing on the
same collection can lose an update.  Group removals (explicit or by
expiration) always detach the removed ids from parent categories before
the pruned group collection is committed.

Typical flow::

    stash = TabStash(JsonFileBlobStore("data/tabstash.json"))
    await stash.migrate_parent_categories_to_domain_names()
    outcome = await stash.save_tabs_with_auto_category(tabs)
    await stash.check_and_remove_expired_tabs()
"""

from __future__ import annotations

import logging
from typing import Callable, Collection, Iterable, Literal, Sequence

from pydantic import BaseModel, Field

from tabstash.core.config import SettingsStore
from tabstash.core.errors import MalformedDomain
from tabstash.core.store import BlobStore
from tabstash.core.time import format_ms, now_ms
from tabstash.core.types import (
    ParentCategory,
    SubCategoryKeyword,
    Tab,
    TabGroup,
    UrlEntry,
    UserSettings,
)
from tabstash.tabs.categories import apply_domain_category_settings, classify_group
from tabstash.tabs.drag import DragTracker
from tabstash.tabs.expiry import (
    SweepResult,
    TimeRemaining,
    backdated_timestamp,
    compute_cutoff,
    sweep,
    time_remaining,
)
from tabstash.tabs.groups import (
    RemovalResult,
    merge_tabs,
    new_group_id,
    remove_group,
    remove_url,
    stamp_save_time,
)
from tabstash.tabs.parents import (
    assign_group_to_category,
    create_parent_category,
    detach_groups,
    migrate_domain_names,
    reattach_groups,
    restore_memberships,
)
from tabstash.tabs.repository import TabRepository

logger = logging.getLogger(__name__)

DropStatus = Literal["removed", "skipped", "internal_operation"]


class SaveOutcome(BaseModel, frozen=True):
    """What a save did; enough for the caller to report partial success."""

    groups: list[TabGroup]
    saved_count: int = 0
    created_ids: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class StampResult(BaseModel, frozen=True):
    success: bool
    timestamp: int | None = None


def _stamp_new_entries(group: TabGroup, added: Collection[str], stamp: int) -> TabGroup:
    entries: list[UrlEntry] = [
        e.model_copy(update={"saved_at": stamp}) if e.url in added and e.saved_at is None else e
        for e in group.urls
    ]
    return group.model_copy(update={"urls": entries, "saved_at": stamp})


class TabStash:
    """Entry point for every core operation.

    Args:
        store: Blob-store collaborator holding all three collections.
        clock: Returns the current time in epoch ms.
        id_factory: Generates ids for new tab groups.
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_group_id,
        drag_tracker: DragTracker | None = None,
    ) -> None:
        self.repo = TabRepository(store)
        self.settings = SettingsStore(store)
        self.drag = drag_tracker or DragTracker()
        self._clock = clock
        self._id_factory = id_factory

    # -- reads -----------------------------------------------------------------

    async def get_groups(self) -> list[TabGroup]:
        return await self.repo.load_groups()

    async def get_parent_categories(self) -> list[ParentCategory]:
        return await self.repo.load_categories()

    async def get_settings(self) -> UserSettings:
        return await self.settings.get()

    # -- saving ----------------------------------------------------------------

    async def save_tabs_with_auto_category(self, tabs: Iterable[Tab]) -> SaveOutcome:
        """Group, deduplicate, classify and persist *tabs*.

        Only groups that actually received new URLs get a fresh
        ``saved_at``; re-saving URLs that are already stored leaves their
        group's expiration clock alone.  Every group that received a URL
        has all its unclassified entries run through its keyword rules.
        Newly created groups whose domain a parent category remembers are
        reattached to it, and a group that absorbed a duplicate is put
        back into its category.

        Raises:
            StorageUnavailable: If the blob store cannot be read or written.
        """
        settings = await self.settings.get()
        snapshot = await self.repo.load()

        merged = merge_tabs(
            snapshot.groups,
            tabs,
            exclude_patterns=settings.exclude_patterns,
            id_factory=self._id_factory,
        )
        stamp = self._clock()
        groups: list[TabGroup] = []
        for group in merged.groups:
            added = merged.added_urls.get(group.id)
            if added:
                group = _stamp_new_entries(classify_group(group), added, stamp)
            groups.append(group)

        categories, cats_changed = detach_groups(snapshot.categories, merged.removed_group_ids)
        categories, groups, restored = restore_memberships(categories, groups, merged.coalesced_ids)
        categories, groups, reattached = reattach_groups(
            categories, groups, [*merged.created_ids, *merged.coalesced_ids]
        )

        await self.repo.commit(
            groups=groups,
            categories=categories if (cats_changed or restored or reattached) else None,
        )
        logger.info(
            "Saved %d new url(s) into %d group(s); %d skipped",
            merged.added_count, len(merged.added_urls), len(merged.skipped),
        )
        return SaveOutcome(
            groups=groups,
            saved_count=merged.added_count,
            created_ids=merged.created_ids,
            skipped=merged.skipped,
        )

    # -- removal ---------------------------------------------------------------

    async def remove_from_parent_categories(self, group_ids: Collection[str]) -> list[ParentCategory]:
        """Detach *group_ids* from every category; ``domain_names`` are untouched."""
        categories = await self.repo.load_categories()
        updated, changed = detach_groups(categories, group_ids)
        if changed:
            await self.repo.commit(categories=updated)
            logger.info("Detached %d group(s) from parent categories", len(group_ids))
        return updated

    async def _commit_removal(self, result: RemovalResult) -> RemovalResult:
        if result.removed_group_ids:
            await self.remove_from_parent_categories(result.removed_group_ids)
        if result.changed:
            await self.repo.commit(groups=result.groups)
        return result

    async def remove_url_from_storage(self, url: str) -> RemovalResult:
        """Remove one saved URL, dropping and cascading its group if it empties."""
        groups = await self.repo.load_groups()
        result = remove_url(groups, url)
        if not result.changed:
            logger.debug("remove_url: url=%s not stored", url)
        return await self._commit_removal(result)

    async def remove_group(self, group_id: str) -> RemovalResult:
        """Delete a whole group at the user's request."""
        groups = await self.repo.load_groups()
        return await self._commit_removal(remove_group(groups, group_id))

    # -- expiration ------------------------------------------------------------

    async def check_and_remove_expired_tabs(self) -> SweepResult | None:
        """Evict groups older than the configured retention.

        Returns ``None`` when auto-delete is disabled or nothing is saved.
        Writes only when the sweep evicted or backfilled something.
        """
        settings = await self.settings.get()
        now = self._clock()
        cutoff = compute_cutoff(settings.auto_delete_period, now)
        if cutoff is None:
            logger.debug("Auto-delete disabled (period=%s)", settings.auto_delete_period)
            return None

        groups = await self.repo.load_groups()
        if not groups:
            return None

        result = sweep(groups, cutoff, now)
        if result.evicted:
            await self.remove_from_parent_categories(result.evicted_ids)
        if result.changed:
            await self.repo.commit(groups=result.kept)
        logger.info(
            "Expiry sweep (cutoff=%s): %d kept, %d evicted",
            format_ms(cutoff), len(result.kept), len(result.evicted),
        )
        return result

    async def update_tab_timestamps(self, period: str | None = None) -> StampResult:
        """Set every group's ``saved_at`` (backdated for test periods), then sweep."""
        groups = await self.repo.load_groups()
        if not groups:
            logger.info("No saved groups to restamp")
            return StampResult(success=False)
        timestamp = backdated_timestamp(period, self._clock())
        await self.repo.commit(groups=stamp_save_time(groups, timestamp))
        logger.info("Restamped %d group(s) to %s", len(groups), format_ms(timestamp))
        await self.check_and_remove_expired_tabs()
        return StampResult(success=True, timestamp=timestamp)

    def calculate_time_remaining(self, saved_at: int | None, period: str | None) -> TimeRemaining:
        return time_remaining(saved_at, period, self._clock())

    # -- categories ------------------------------------------------------------

    async def migrate_parent_categories_to_domain_names(self) -> list[ParentCategory]:
        """Record current domains of referenced groups; a no-op once migrated."""
        snapshot = await self.repo.load()
        categories, changed = migrate_domain_names(snapshot.categories, snapshot.groups)
        if changed:
            await self.repo.commit(categories=categories)
        else:
            logger.debug("Parent categories already migrated")
        return categories

    async def update_domain_category_settings(
        self,
        domain: str,
        sub_categories: Sequence[str],
        category_keywords: Sequence[SubCategoryKeyword],
    ) -> bool:
        """Store keyword rules on the group for *domain*.

        Returns ``False`` (and writes nothing) for a malformed domain.
        """
        groups = await self.repo.load_groups()
        try:
            updated = apply_domain_category_settings(groups, domain, sub_categories, category_keywords)
        except MalformedDomain as exc:
            logger.warning("Ignoring category settings: %s", exc)
            return False
        await self.repo.commit(groups=updated)
        return True

    async def create_parent_category(self, name: str) -> ParentCategory:
        categories = await self.repo.load_categories()
        updated, category = create_parent_category(categories, name)
        await self.repo.commit(categories=updated)
        return category

    async def assign_group_to_category(self, group_id: str, category_id: str) -> None:
        snapshot = await self.repo.load()
        categories, groups = assign_group_to_category(
            snapshot.categories, snapshot.groups, group_id, category_id
        )
        await self.repo.commit(groups=groups, categories=categories)

    # -- drag and drop ---------------------------------------------------------

    def url_drag_started(self, url: str) -> None:
        self.drag.start(url)
        logger.debug("Drag started: url=%s", url)

    async def url_dropped(self, url: str, from_external: bool) -> DropStatus:
        """Handle a URL dropped outside the collection page."""
        if not from_external:
            return "internal_operation"
        settings = await self.settings.get()
        if not settings.remove_tab_after_open:
            return "skipped"
        await self.remove_url_from_storage(url)
        return "removed"

    async def tab_created(self, tab: Tab) -> bool:
        """Consume a pending drag matching *tab*; returns ``True`` if a URL was removed."""
        dragged = self.drag.consume_if_matches(tab.url)
        if dragged is None:
            return False
        settings = await self.settings.get()
        if not settings.remove_tab_after_open:
            return False
        await self.remove_url_from_storage(dragged.url)
        return True
