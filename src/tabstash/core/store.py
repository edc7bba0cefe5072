"""Blob-store primitives: the host key-value collaborator.

The backing store is a plain async get/set of JSON-compatible values by
key.  It offers no transactions, no compare-and-swap and no partial
updates, so every collection mutation in tabstash is a whole-collection
read-modify-write.  Swapping in a transactional backend means providing
another :class:`BlobStore`; nothing above this boundary changes.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from tabstash.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Async key-value blob store contract.

    ``get`` returns only the keys that exist; missing keys are absent
    from the result (callers apply their own defaults).
    """

    async def get(self, keys: Sequence[str]) -> dict[str, Any]: ...

    async def set(self, items: Mapping[str, Any]) -> None: ...


class MemoryBlobStore:
    """In-process store.  Values are deep-copied on the way in and out."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Sequence[str]) -> dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileBlobStore:
    """Blob store backed by a single JSON object on disk.

    Writes go to a temporary file in the same directory and atomically
    replace the target via :func:`os.replace`, so readers never see a
    partially-written file.  A corrupt file reads as empty and is logged;
    I/O failures raise :class:`StorageUnavailable`.

    Args:
        path: Location of the JSON file.  Created on first write.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text("utf-8")
        except OSError as exc:
            raise StorageUnavailable(f"cannot read {self._path}: {exc}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Corrupt store at %s; treating as empty", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store at %s is not a JSON object; treating as empty", self._path)
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".json.tmp")
        except OSError as exc:
            raise StorageUnavailable(f"cannot write {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
                fh.write("\n")
            os.replace(tmp, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise StorageUnavailable(f"cannot write {self._path}: {exc}") from exc

    def _get(self, keys: Sequence[str]) -> dict[str, Any]:
        data = self._read_all()
        return {k: data[k] for k in keys if k in data}

    def _set(self, items: Mapping[str, Any]) -> None:
        data = self._read_all()
        data.update(items)
        self._write_all(data)

    async def get(self, keys: Sequence[str]) -> dict[str, Any]:
        return await asyncio.to_thread(self._get, list(keys))

    async def set(self, items: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._set, dict(items))
