"""Tests for tabstash.host.messages parsing and routing."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError

from tabstash.core.errors import UnknownAction
from tabstash.core.store import MemoryBlobStore
from tabstash.host.messages import (
    ACTIONS,
    CheckExpiredTabs,
    MessageRouter,
    UrlDropped,
    parse_message,
)
from tabstash.host.scheduler import AlarmInfo
from tabstash.tabs.service import TabStash

NOW = 1_750_000_000_000


class _FixedScheduler:
    def __init__(self, info: AlarmInfo | None) -> None:
        self.info = info

    def create(self, name: str, period_seconds: float, callback: Any) -> AlarmInfo:
        raise NotImplementedError

    def get(self, name: str) -> AlarmInfo | None:
        return self.info if self.info and self.info.name == name else None

    def clear(self, name: str) -> bool:
        return False


def _seeded(store: MemoryBlobStore) -> None:
    asyncio.run(
        store.set(
            {
                "savedTabs": [
                    {
                        "id": "g1",
                        "domain": "https://a.com",
                        "urls": [{"url": "https://a.com/1", "title": "A"}],
                        "savedAt": NOW,
                    }
                ]
            }
        )
    )


class TestParseMessage:
    def test_camel_case_payload(self) -> None:
        message = parse_message({"action": "urlDropped", "url": "https://a.com/", "fromExternal": True})
        assert isinstance(message, UrlDropped)
        assert message.from_external is True

    def test_defaults(self) -> None:
        message = parse_message({"action": "checkExpiredTabs"})
        assert isinstance(message, CheckExpiredTabs)
        assert message.update_timestamps is False and message.period is None

    @pytest.mark.parametrize("payload", [{"action": "explode"}, {}, "urlDropped", None])
    def test_unknown_action(self, payload: Any) -> None:
        with pytest.raises(UnknownAction):
            parse_message(payload)

    def test_missing_field(self) -> None:
        with pytest.raises(ValidationError):
            parse_message({"action": "removeUrlFromStorage"})

    def test_action_set(self) -> None:
        assert len(ACTIONS) == 7


class TestMessageRouter:
    def _dispatch(self, router: MessageRouter, payload: Any) -> dict[str, Any]:
        return asyncio.run(router.dispatch(payload))

    def test_unknown_action_is_error_response(self, stash: TabStash) -> None:
        response = self._dispatch(MessageRouter(stash), {"action": "explode"})
        assert response["status"] == "error"
        assert "explode" in response["error"]

    def test_invalid_payload_is_error_response(self, stash: TabStash) -> None:
        response = self._dispatch(MessageRouter(stash), {"action": "urlDragStarted"})
        assert response["status"] == "error"

    def test_drag_then_internal_drop(self, stash: TabStash) -> None:
        router = MessageRouter(stash)
        assert self._dispatch(router, {"action": "urlDragStarted", "url": "https://a.com/1"}) == {"status": "ok"}
        assert stash.drag.pending() is not None
        assert self._dispatch(router, {"action": "urlDropped", "url": "https://a.com/1"}) == {
            "status": "internal_operation"
        }

    def test_external_drop_removes(self, stash: TabStash, store: MemoryBlobStore) -> None:
        _seeded(store)
        response = self._dispatch(
            MessageRouter(stash),
            {"action": "urlDropped", "url": "https://a.com/1", "fromExternal": True},
        )
        assert response == {"status": "removed"}
        assert store.snapshot()["savedTabs"] == []

    def test_remove_url(self, stash: TabStash, store: MemoryBlobStore) -> None:
        _seeded(store)
        response = self._dispatch(MessageRouter(stash), {"action": "removeUrlFromStorage", "url": "https://a.com/1"})
        assert response == {"status": "removed"}
        assert store.snapshot()["savedTabs"] == []

    def test_time_remaining(self, stash: TabStash) -> None:
        response = self._dispatch(
            MessageRouter(stash),
            {"action": "calculateTimeRemaining", "savedAt": NOW - 10_000, "autoDeletePeriod": "1min"},
        )
        assert response == {"timeRemaining": 50_000, "expirationTime": NOW + 50_000}

    def test_time_remaining_never(self, stash: TabStash) -> None:
        response = self._dispatch(
            MessageRouter(stash),
            {"action": "calculateTimeRemaining", "savedAt": NOW, "autoDeletePeriod": "never"},
        )
        assert response == {"timeRemaining": None}

    def test_check_expired(self, stash: TabStash, store: MemoryBlobStore) -> None:
        _seeded(store)
        assert self._dispatch(MessageRouter(stash), {"action": "checkExpiredTabs"}) == {"status": "completed"}
        assert len(store.snapshot()["savedTabs"]) == 1

    def test_check_expired_with_timestamp_update(self, stash: TabStash, store: MemoryBlobStore) -> None:
        _seeded(store)
        asyncio.run(store.set({"userSettings": {"autoDeletePeriod": "1min"}}))
        response = self._dispatch(
            MessageRouter(stash),
            {"action": "checkExpiredTabs", "updateTimestamps": True, "period": "1min"},
        )
        assert response == {"status": "completed", "success": True}
        assert store.snapshot()["savedTabs"] == []

    def test_update_timestamps(self, stash: TabStash, store: MemoryBlobStore) -> None:
        _seeded(store)
        response = self._dispatch(MessageRouter(stash), {"action": "updateTabTimestamps", "period": "7days"})
        assert response == {"status": "completed", "result": {"success": True, "timestamp": NOW}}

    def test_alarm_status(self, stash: TabStash) -> None:
        info = AlarmInfo(name="checkExpiredTabs", period_seconds=30, scheduled_time=NOW + 30_000)
        router = MessageRouter(stash, _FixedScheduler(info))
        assert self._dispatch(router, {"action": "getAlarmStatus"}) == {
            "exists": True,
            "scheduledTime": NOW + 30_000,
        }

    def test_alarm_status_without_scheduler(self, stash: TabStash) -> None:
        assert self._dispatch(MessageRouter(stash), {"action": "getAlarmStatus"}) == {"exists": False}

    def test_handler_failure_becomes_error_response(self) -> None:
        class _Broken:
            async def get(self, keys: Any) -> dict[str, Any]:
                raise RuntimeError("disk on fire")

            async def set(self, items: Any) -> None:
                raise RuntimeError("disk on fire")

        router = MessageRouter(TabStash(_Broken()))
        response = self._dispatch(router, {"action": "removeUrlFromStorage", "url": "https://a.com/1"})
        assert response == {"status": "error", "error": "disk on fire"}
