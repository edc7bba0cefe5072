"""Parent category operations.

A :class:`ParentCategory` references tab groups two ways:

- ``domains``: group ids.  Transient membership; an id is stripped when
  its group is deleted or evicted.
- ``domain_names``: normalized domain strings.  Durable; group removal
  never touches it, so a domain that is saved again later is put back
  into its category by :func:`reattach_groups`.

Functions are pure over snapshots of ``parentCategories`` and
``savedTabs``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Collection, Sequence

from tabstash.core.types import ParentCategory, TabGroup
from tabstash.tabs.groups import find_group

logger = logging.getLogger(__name__)


def new_category_id() -> str:
    return str(uuid.uuid4())


def migrate_domain_names(
    categories: Sequence[ParentCategory],
    groups: Sequence[TabGroup],
) -> tuple[list[ParentCategory], bool]:
    """Record the domain of every group referenced by id into ``domain_names``.

    Ids whose group no longer exists are left alone.  Idempotent: once
    every referenced domain is recorded a second run changes nothing.

    Returns:
        ``(categories, changed)``.
    """
    domain_by_id = {g.id: g.domain for g in groups}
    updated: list[ParentCategory] = []
    changed = False
    for category in categories:
        names = list(category.domain_names)
        for group_id in category.domains:
            domain = domain_by_id.get(group_id)
            if domain is not None and domain not in names:
                names.append(domain)
        if len(names) != len(category.domain_names):
            changed = True
            logger.info(
                "Category %r: recorded %d domain name(s)",
                category.name,
                len(names) - len(category.domain_names),
            )
            category = category.model_copy(update={"domain_names": names})
        updated.append(category)
    return updated, changed


def detach_groups(
    categories: Sequence[ParentCategory],
    group_ids: Collection[str],
) -> tuple[list[ParentCategory], bool]:
    """Strip *group_ids* from every category's ``domains``; ``domain_names`` is kept."""
    ids = set(group_ids)
    updated: list[ParentCategory] = []
    changed = False
    for category in categories:
        kept = [d for d in category.domains if d not in ids]
        if len(kept) != len(category.domains):
            changed = True
            category = category.model_copy(update={"domains": kept})
        updated.append(category)
    return updated, changed


def category_for_domain(categories: Sequence[ParentCategory], domain: str) -> ParentCategory | None:
    """First category whose durable ``domain_names`` include *domain*."""
    for category in categories:
        if domain in category.domain_names:
            return category
    return None


def reattach_groups(
    categories: Sequence[ParentCategory],
    groups: Sequence[TabGroup],
    group_ids: Collection[str],
) -> tuple[list[ParentCategory], list[TabGroup], bool]:
    """Put freshly created groups back into the category recorded for their domain.

    For each group in *group_ids* without a ``parent_category_id``, the
    first category listing its domain in ``domain_names`` gets the group
    id appended to ``domains`` and the group gets that category's id.

    Returns:
        ``(categories, groups, changed)``.
    """
    cats = list(categories)
    updated_groups: list[TabGroup] = []
    changed = False
    for group in groups:
        if group.id in group_ids and group.parent_category_id is None:
            match = category_for_domain(cats, group.domain)
            if match is not None:
                idx = cats.index(match)
                if group.id not in match.domains:
                    cats[idx] = match.model_copy(update={"domains": [*match.domains, group.id]})
                group = group.model_copy(update={"parent_category_id": match.id})
                changed = True
                logger.info("Reattached %s to category %r", group.domain, match.name)
        updated_groups.append(group)
    return cats, updated_groups, changed


def restore_memberships(
    categories: Sequence[ParentCategory],
    groups: Sequence[TabGroup],
    group_ids: Collection[str],
) -> tuple[list[ParentCategory], list[TabGroup], bool]:
    """Make each listed group and the category it points at agree again.

    A group whose ``parent_category_id`` names an existing category is put
    back into that category's ``domains`` and ``domain_names``.  A group
    pointing at a category that no longer exists has the link cleared.

    Returns:
        ``(categories, groups, changed)``.
    """
    cats = list(categories)
    index = {c.id: i for i, c in enumerate(cats)}
    updated_groups: list[TabGroup] = []
    changed = False
    for group in groups:
        if group.id in group_ids and group.parent_category_id is not None:
            idx = index.get(group.parent_category_id)
            if idx is None:
                group = group.model_copy(update={"parent_category_id": None})
                changed = True
            else:
                category = cats[idx]
                domains = category.domains if group.id in category.domains else [*category.domains, group.id]
                names = (
                    category.domain_names
                    if group.domain in category.domain_names
                    else [*category.domain_names, group.domain]
                )
                if domains is not category.domains or names is not category.domain_names:
                    cats[idx] = category.model_copy(update={"domains": domains, "domain_names": names})
                    changed = True
                    logger.info("Restored %s in category %r", group.domain, category.name)
        updated_groups.append(group)
    return cats, updated_groups, changed


def create_parent_category(
    categories: Sequence[ParentCategory],
    name: str,
    *,
    id_factory: Callable[[], str] = new_category_id,
) -> tuple[list[ParentCategory], ParentCategory]:
    """Append a new empty category.

    Raises:
        ValueError: If *name* is blank or already used.
    """
    name = name.strip()
    if not name:
        raise ValueError("category name must not be empty")
    if any(c.name == name for c in categories):
        raise ValueError(f"category {name!r} already exists")
    category = ParentCategory(id=id_factory(), name=name)
    return [*categories, category], category


def assign_group_to_category(
    categories: Sequence[ParentCategory],
    groups: Sequence[TabGroup],
    group_id: str,
    category_id: str,
) -> tuple[list[ParentCategory], list[TabGroup]]:
    """Move a group into *category_id*, recording both its id and its domain.

    The group (and its domain name) is removed from every other category
    so that reattachment stays unambiguous.

    Raises:
        ValueError: If the group or the category does not exist.
    """
    group = find_group(groups, group_id=group_id)
    if group is None:
        raise ValueError(f"unknown group {group_id!r}")
    if not any(c.id == category_id for c in categories):
        raise ValueError(f"unknown category {category_id!r}")

    updated: list[ParentCategory] = []
    for category in categories:
        domains = [d for d in category.domains if d != group_id]
        names = [n for n in category.domain_names if n != group.domain]
        if category.id == category_id:
            domains.append(group_id)
            names.append(group.domain)
        updated.append(category.model_copy(update={"domains": domains, "domain_names": names}))

    new_groups = [
        g.model_copy(update={"parent_category_id": category_id}) if g.id == group_id else g
        for g in groups
    ]
    return updated, new_groups
