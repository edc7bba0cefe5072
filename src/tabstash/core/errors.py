"""Exception taxonomy shared by the stores, the orchestrator and the host layer."""

from __future__ import annotations


class TabStashError(Exception):
    """Base class for every error raised by tabstash."""


class InvalidUrl(TabStashError, ValueError):
    """A tab URL could not be parsed into a grouping key.

    Per-item: the caller skips the tab and continues with the batch.
    """

    def __init__(self, url: str, reason: str = "unparseable URL") -> None:
        super().__init__(f"{reason}: {url!r}")
        self.url = url


class MalformedDomain(TabStashError, ValueError):
    """A category-settings update named a domain that is not ``scheme://host`` shaped."""

    def __init__(self, domain: str) -> None:
        super().__init__(f"not a URL-shaped domain: {domain!r}")
        self.domain = domain


class StorageUnavailable(TabStashError):
    """The backing blob store could not be read or written.

    Whole-operation failure: propagates to the caller of the top-level
    operation.  No partial write is assumed committed.
    """


class SchedulerUnavailable(TabStashError):
    """No periodic timer is available on this host."""


class UnknownAction(TabStashError, ValueError):
    """An inbound message named an action outside the supported set."""

    def __init__(self, action: object) -> None:
        super().__init__(f"unknown action: {action!r}")
        self.action = action
