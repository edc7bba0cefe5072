"""Log redaction for browsing history.

Saved URLs and page titles are browsing history.  Once installed, the
filter rewrites every record passing through a handler:

- ``url=...``, ``title=...`` (and the drag variants) lose their value
  entirely.
- Any other bare ``http(s)://`` URL is cut back to its ``scheme://host``
  so log lines still say which domain a group belongs to.
"""

from __future__ import annotations

import logging
import re
from typing import Final

REDACTED: Final[str] = "[REDACTED]"

_PAYLOAD_KEYS: Final[tuple[str, ...]] = ("url", "title", "dragged_url", "tab_url")

_PAYLOAD_RE: Final[re.Pattern[str]] = re.compile(
    r"\b(?P<key>" + "|".join(_PAYLOAD_KEYS) + r")\s*[=:]\s*"
    r"(?P<value>\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)

# Path, query or fragment following a scheme://host prefix.
_URL_TAIL_RE: Final[re.Pattern[str]] = re.compile(
    r"(?P<origin>https?://[^\s/?#'\"]+)(?P<tail>[/?#][^\s'\"]*)",
    re.IGNORECASE,
)


def redact_message(message: str) -> str:
    """Blank out tagged payloads, then strip paths from remaining URLs."""
    message = _PAYLOAD_RE.sub(lambda m: f"{m.group('key')}={REDACTED}", message)
    return _URL_TAIL_RE.sub(lambda m: f"{m.group('origin')}/{REDACTED}", message)


class SanitizingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Format first so that values passed as %-args are covered too.
        record.msg = redact_message(record.getMessage())
        record.args = None
        return True


def install_sanitizing_filter(
    logger: logging.Logger | None = None,
    *,
    handler_level: bool = False,
) -> SanitizingFilter:
    """Attach one :class:`SanitizingFilter` to *logger* (root if ``None``).

    With ``handler_level=True`` the filter goes on each of the logger's
    handlers instead.  Logger filters never see records propagated from
    child loggers, so the root logger needs the handler form.
    """
    sanitizer = SanitizingFilter()
    target = logger if logger is not None else logging.getLogger()
    if not handler_level:
        target.addFilter(sanitizer)
        return sanitizer
    for handler in target.handlers:
        handler.addFilter(sanitizer)
    return sanitizer
