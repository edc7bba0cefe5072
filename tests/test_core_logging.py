"""Tests for tabstash.core.logging redaction."""

from __future__ import annotations

import logging

import pytest

from tabstash.core.logging import REDACTED, SanitizingFilter, install_sanitizing_filter, redact_message


class TestRedactMessage:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("remove url=https://a.com/x", "remove url=[REDACTED]"),
            ("title: 'My bank'", "title=[REDACTED]"),
            ('tab_url="https://a.com"', "tab_url=[REDACTED]"),
            ("Drag started: url=https://a.com/x", "Drag started: url=[REDACTED]"),
        ],
    )
    def test_redacts(self, message: str, expected: str) -> None:
        assert redact_message(message) == expected

    def test_leaves_other_text(self) -> None:
        assert redact_message("Saved 3 new url(s) into 1 group(s)") == "Saved 3 new url(s) into 1 group(s)"

    def test_key_must_be_whole_word(self) -> None:
        assert redact_message("curl=ok") == "curl=ok"

    def test_bare_url_keeps_origin(self) -> None:
        message = "Skipping tab: missing scheme: 'https://bank.example/acct?id=7'"
        assert redact_message(message) == f"Skipping tab: missing scheme: 'https://bank.example/{REDACTED}'"

    def test_bare_origin_untouched(self) -> None:
        assert redact_message("Reattached https://a.com to Work") == "Reattached https://a.com to Work"


class TestSanitizingFilter:
    def test_formats_args_before_redacting(self) -> None:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "remove_url: url=%s", ("https://a.com/",), None)
        assert SanitizingFilter().filter(record)
        assert record.getMessage() == "remove_url: url=[REDACTED]"
        assert record.args is None

    def test_install_on_handlers(self) -> None:
        logger = logging.getLogger("tabstash.test.sanitize")
        handler = logging.NullHandler()
        logger.addHandler(handler)
        try:
            filt = install_sanitizing_filter(logger, handler_level=True)
            assert filt in handler.filters
            assert filt not in logger.filters
        finally:
            logger.removeHandler(handler)

    def test_install_on_logger(self) -> None:
        logger = logging.getLogger("tabstash.test.sanitize2")
        filt = install_sanitizing_filter(logger)
        try:
            assert filt in logger.filters
        finally:
            logger.removeFilter(filt)
