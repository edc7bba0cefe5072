"""Tests for tabstash.tabs.categories: keyword classification and per-domain rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from tabstash.core.errors import MalformedDomain
from tabstash.core.types import SubCategoryKeyword, TabGroup, UrlEntry
from tabstash.tabs.categories import (
    apply_domain_category_settings,
    classify,
    classify_group,
    load_rules,
    rules_from_groups,
    save_rules,
)

DOCS = SubCategoryKeyword(sub_category="docs", keywords=["/docs/", "guide"])
BLOG = SubCategoryKeyword(sub_category="blog", keywords=["/blog/"])


class TestClassify:
    def test_url_keyword_match(self) -> None:
        assert classify("https://a.com/docs/x", "", [DOCS]) == "docs"

    def test_no_match_is_none(self) -> None:
        assert classify("https://a.com/other", "", [DOCS]) is None

    def test_title_keyword_match(self) -> None:
        assert classify("https://a.com/p/1", "Setup Guide", [DOCS]) == "docs"

    def test_case_insensitive(self) -> None:
        assert classify("https://a.com/DOCS/x", "", [DOCS]) == "docs"

    def test_first_rule_wins(self) -> None:
        both = "https://a.com/blog/docs/"
        assert classify(both, "", [DOCS, BLOG]) == "docs"
        assert classify(both, "", [BLOG, DOCS]) == "blog"

    def test_blank_keywords_never_match(self) -> None:
        rule = SubCategoryKeyword(sub_category="all", keywords=["", "  "])
        assert classify("https://a.com", "title", [rule]) is None

    def test_no_rules(self) -> None:
        assert classify("https://a.com/docs/", "", None) is None
        assert classify("https://a.com/docs/", "", []) is None


def _group(*urls: UrlEntry, rules: list[SubCategoryKeyword] | None = None) -> TabGroup:
    return TabGroup(id="g1", domain="https://a.com", urls=list(urls), category_keywords=rules)


class TestClassifyGroup:
    def test_fills_missing_only(self) -> None:
        group = _group(
            UrlEntry(url="https://a.com/docs/1"),
            UrlEntry(url="https://a.com/docs/2", sub_category="manual"),
            UrlEntry(url="https://a.com/about"),
            rules=[DOCS],
        )
        result = classify_group(group)
        assert [e.sub_category for e in result.urls] == ["docs", "manual", None]

    def test_restricted_to_given_urls(self) -> None:
        group = _group(
            UrlEntry(url="https://a.com/docs/1"),
            UrlEntry(url="https://a.com/docs/2"),
            rules=[DOCS],
        )
        result = classify_group(group, {"https://a.com/docs/2"})
        assert [e.sub_category for e in result.urls] == [None, "docs"]

    def test_without_rules_returns_same_group(self) -> None:
        group = _group(UrlEntry(url="https://a.com/docs/1"))
        assert classify_group(group) is group


class TestApplyDomainSettings:
    def test_writes_rules_onto_matching_domain(self) -> None:
        groups = [
            TabGroup(id="g1", domain="https://a.com", urls=[UrlEntry(url="https://a.com/docs/1")]),
            TabGroup(id="g2", domain="https://b.com", urls=[UrlEntry(url="https://b.com/docs/1")]),
        ]
        updated = apply_domain_category_settings(groups, "https://a.com", ["docs"], [DOCS])

        assert updated[0].sub_categories == ["docs"]
        assert updated[0].category_keywords == [DOCS]
        assert updated[0].urls[0].sub_category == "docs"
        assert updated[1] == groups[1]

    def test_malformed_domain_rejected(self) -> None:
        with pytest.raises(MalformedDomain):
            apply_domain_category_settings([], "Work", [], [])

    def test_unknown_domain_unchanged(self) -> None:
        groups = [TabGroup(id="g1", domain="https://a.com", urls=[UrlEntry(url="https://a.com/")])]
        assert apply_domain_category_settings(groups, "https://zzz.com", ["x"], []) == groups


class TestRulesFiles:
    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text(
            "domains:\n"
            "  https://docs.python.org:\n"
            "    sub_categories: [tutorial]\n"
            "    category_keywords:\n"
            "      - sub_category: tutorial\n"
            "        keywords: [/tutorial/]\n"
        )
        rules = load_rules(path)
        rule = rules.domains["https://docs.python.org"]
        assert rule.sub_categories == ["tutorial"]
        assert rule.category_keywords[0].keywords == ["/tutorial/"]

    def test_empty_file_is_no_rules(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("")
        assert load_rules(path).domains == {}

    def test_invalid_rule_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("domains:\n  https://a.com:\n    category_keywords:\n      - keywords: [x]\n")
        with pytest.raises(ValidationError):
            load_rules(path)

    def test_export_then_load(self, tmp_path: Path) -> None:
        groups = [
            TabGroup(id="g1", domain="https://a.com", sub_categories=["docs"], category_keywords=[DOCS]),
            TabGroup(id="g2", domain="https://b.com"),
        ]
        rules = rules_from_groups(groups)
        assert list(rules.domains) == ["https://a.com"]

        path = save_rules(rules, tmp_path / "out" / "rules.yaml")
        assert load_rules(path) == rules
