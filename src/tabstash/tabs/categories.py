"""Per-domain sub-category keyword rules.

Rules are stored inline on each :class:`TabGroup` and located by domain,
not by id, so a group recreated for the same domain picks its settings
up again through the same lookup.

Matching is case-insensitive: a rule matches when any of its keywords
occurs as a substring of the URL or the title.  Rules are tried in
declaration order and the first match wins.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Collection, Sequence

import yaml
from pydantic import BaseModel, Field

from tabstash.core.errors import MalformedDomain
from tabstash.core.types import SubCategoryKeyword, TabGroup
from tabstash.tabs.domain import is_domain_key

logger = logging.getLogger(__name__)


def classify(url: str, title: str, rules: Sequence[SubCategoryKeyword] | None) -> str | None:
    """Return the sub-category of the first rule matching *url* or *title*, else ``None``."""
    if not rules:
        return None
    haystacks = (url.casefold(), (title or "").casefold())
    for rule in rules:
        for keyword in rule.keywords:
            needle = keyword.strip().casefold()
            if needle and any(needle in h for h in haystacks):
                return rule.sub_category
    return None


def classify_group(group: TabGroup, only_urls: Collection[str] | None = None) -> TabGroup:
    """Fill ``sub_category`` on entries that have none, using the group's own rules.

    Entries that already carry a sub-category are never reclassified.

    Args:
        group: Group to classify.
        only_urls: Restrict classification to these URLs (e.g. the ones
            a save just appended).  ``None`` means every entry.
    """
    if not group.category_keywords:
        return group
    changed = False
    entries = []
    for entry in group.urls:
        if entry.sub_category is None and (only_urls is None or entry.url in only_urls):
            match = classify(entry.url, entry.title, group.category_keywords)
            if match is not None:
                entry = entry.model_copy(update={"sub_category": match})
                changed = True
        entries.append(entry)
    return group.model_copy(update={"urls": entries}) if changed else group


def apply_domain_category_settings(
    groups: Sequence[TabGroup],
    domain: str,
    sub_categories: Sequence[str],
    category_keywords: Sequence[SubCategoryKeyword],
) -> list[TabGroup]:
    """Write sub-categories and keyword rules onto the group for *domain*.

    Unclassified entries of that group are classified with the new
    rules.  An unknown domain leaves the snapshot unchanged.

    Raises:
        MalformedDomain: If *domain* is not ``scheme://host`` shaped.
    """
    if not is_domain_key(domain):
        raise MalformedDomain(domain)
    updated: list[TabGroup] = []
    found = False
    for group in groups:
        if group.domain == domain:
            found = True
            group = classify_group(
                group.model_copy(
                    update={
                        "sub_categories": list(sub_categories),
                        "category_keywords": list(category_keywords),
                    }
                )
            )
        updated.append(group)
    if not found:
        logger.debug("No saved group for %s; category settings not applied", domain)
    return updated


# ---------------------------------------------------------------------------
# YAML rule files
# ---------------------------------------------------------------------------


class DomainRules(BaseModel, frozen=True):
    sub_categories: list[str] = Field(default_factory=list)
    category_keywords: list[SubCategoryKeyword] = Field(default_factory=list)


class RulesFile(BaseModel, frozen=True):
    """Keyword rules for several domains, e.g.::

        domains:
          https://docs.python.org:
            sub_categories: [tutorial, library]
            category_keywords:
              - sub_category: tutorial
                keywords: [/tutorial/]
    """

    domains: dict[str, DomainRules] = Field(default_factory=dict)


def load_rules(path: Path) -> RulesFile:
    """Load and validate a keyword-rules YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError / ValidationError: If the YAML is malformed or invalid.
    """
    raw = yaml.safe_load(path.read_text())
    return RulesFile.model_validate(raw or {})


def save_rules(rules: RulesFile, path: Path) -> Path:
    data = rules.model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path


def rules_from_groups(groups: Sequence[TabGroup]) -> RulesFile:
    """Collect the rules currently stored on *groups* (groups without rules are left out)."""
    return RulesFile(
        domains={
            g.domain: DomainRules(
                sub_categories=list(g.sub_categories or []),
                category_keywords=list(g.category_keywords or []),
            )
            for g in groups
            if g.sub_categories or g.category_keywords
        }
    )
