"""User settings persistence.

Settings live under the ``userSettings`` key of the blob store.  Reads
always merge the stored record over :data:`DEFAULT_SETTINGS`, so a
record written by an older version (missing newer keys) still yields a
complete :class:`UserSettings`.

Usage::

    from tabstash.core.config import SettingsStore

    settings_store = SettingsStore(blob_store)
    settings = await settings_store.get()
    await settings_store.update({"autoDeletePeriod": "7days"})
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from tabstash.core.defaults import SETTINGS_KEY
from tabstash.core.store import BlobStore
from tabstash.core.types import UserSettings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = UserSettings()

_ALIASES = {name: to_camel(name) for name in UserSettings.model_fields}


def _overlay(base: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        base[_ALIASES.get(key, key)] = value
    return base


def merge_settings(stored: Any) -> UserSettings:
    """Overlay *stored* on the defaults.

    Accepts either camelCase (stored) or snake_case keys.  A record that
    is not a mapping or fails validation is logged and replaced by the
    defaults.
    """
    if stored is None:
        return DEFAULT_SETTINGS
    if not isinstance(stored, Mapping):
        logger.warning("Stored settings are not an object (%s); using defaults", type(stored).__name__)
        return DEFAULT_SETTINGS
    merged = _overlay(DEFAULT_SETTINGS.model_dump(by_alias=True), stored)
    try:
        return UserSettings.model_validate(merged)
    except ValidationError:
        logger.warning("Invalid stored settings %r; using defaults", dict(stored))
        return DEFAULT_SETTINGS


class SettingsStore:
    """Read/write access to :class:`UserSettings` in a blob store."""

    def __init__(self, store: BlobStore) -> None:
        self._store = store

    async def get(self) -> UserSettings:
        data = await self._store.get([SETTINGS_KEY])
        return merge_settings(data.get(SETTINGS_KEY))

    async def save(self, settings: UserSettings) -> None:
        await self._store.set({SETTINGS_KEY: settings.model_dump(mode="json", by_alias=True)})

    async def update(self, patch: Mapping[str, Any]) -> UserSettings:
        """Merge *patch* into the current settings and persist.  Returns the full settings.

        Raises:
            pydantic.ValidationError: If the patched settings are invalid.
        """
        current = _overlay((await self.get()).model_dump(by_alias=True), patch)
        settings = UserSettings.model_validate(current)
        await self.save(settings)
        return settings
