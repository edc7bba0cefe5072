"""Domain key derivation for grouping saved tabs.

A tab's grouping key is ``scheme://host``: stable under path, query and
fragment changes, so ``https://a.com/1`` and ``https://a.com/2?x`` land
in the same group.  The port is not part of the key.
"""

from __future__ import annotations

from typing import Iterable
from urllib.parse import urlsplit

from tabstash.core.errors import InvalidUrl


def is_excluded(url: str, patterns: Iterable[str]) -> bool:
    """True when *url* starts with any of the exclusion prefixes."""
    return any(url.startswith(p) for p in patterns if p)


def domain_key(url: str) -> str:
    """Return the ``scheme://host`` grouping key for *url*.

    Scheme and host are lower-cased.  The host is rendered the way
    browsers report it: IPv6 literals keep their brackets and
    internationalized names are punycoded.  URLs without a host
    (``about:blank``, ``file:///...``) still get a key, ``about://`` /
    ``file://``.

    Raises:
        InvalidUrl: If *url* has no scheme or cannot be parsed.
    """
    url = url.strip()
    if not url:
        raise InvalidUrl(url, "empty URL")
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        elif not host.isascii():
            host = host.encode("idna").decode("ascii")
    except ValueError as exc:
        # UnicodeError from the idna codec is a ValueError too
        raise InvalidUrl(url, str(exc)) from exc
    if not parts.scheme:
        raise InvalidUrl(url, "missing scheme")
    return f"{parts.scheme.lower()}://{host}"


def is_domain_key(domain: str) -> bool:
    """Cheap shape check used before writing per-domain category settings."""
    scheme, sep, _host = domain.partition("://")
    return bool(sep) and bool(scheme)
