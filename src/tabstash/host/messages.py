"""Inbound host messages: a closed set of actions and their dispatcher.

Every message is a JSON object with an ``action`` discriminator plus
camelCase payload fields.  Unknown actions are rejected with
:class:`~tabstash.core.errors.UnknownAction` rather than ignored.

:meth:`MessageRouter.dispatch` never raises: handler failures become
``{"status": "error", "error": ...}`` responses so the host event loop
keeps serving.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Final, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from tabstash.core.defaults import EXPIRY_ALARM_NAME
from tabstash.core.errors import TabStashError, UnknownAction
from tabstash.host.scheduler import Scheduler
from tabstash.tabs.service import TabStash

logger = logging.getLogger(__name__)


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class UrlDragStarted(_Message):
    action: Literal["urlDragStarted"]
    url: str


class UrlDropped(_Message):
    action: Literal["urlDropped"]
    url: str
    from_external: bool = False


class RemoveUrlFromStorage(_Message):
    action: Literal["removeUrlFromStorage"]
    url: str


class CalculateTimeRemaining(_Message):
    action: Literal["calculateTimeRemaining"]
    saved_at: int | None = None
    auto_delete_period: str | None = None


class CheckExpiredTabs(_Message):
    action: Literal["checkExpiredTabs"]
    update_timestamps: bool = False
    period: str | None = None


class UpdateTabTimestamps(_Message):
    action: Literal["updateTabTimestamps"]
    period: str | None = None


class GetAlarmStatus(_Message):
    action: Literal["getAlarmStatus"]


Message = Annotated[
    Union[
        UrlDragStarted,
        UrlDropped,
        RemoveUrlFromStorage,
        CalculateTimeRemaining,
        CheckExpiredTabs,
        UpdateTabTimestamps,
        GetAlarmStatus,
    ],
    Field(discriminator="action"),
]

_MESSAGE_ADAPTER: Final[TypeAdapter[Message]] = TypeAdapter(Message)

ACTIONS: Final[frozenset[str]] = frozenset(
    {
        "urlDragStarted",
        "urlDropped",
        "removeUrlFromStorage",
        "calculateTimeRemaining",
        "checkExpiredTabs",
        "updateTabTimestamps",
        "getAlarmStatus",
    }
)


def parse_message(payload: Any) -> Message:
    """Validate *payload* into one of the message types.

    Raises:
        UnknownAction: If ``action`` is missing or not in :data:`ACTIONS`.
        pydantic.ValidationError: If required fields are missing or mistyped.
    """
    action = payload.get("action") if isinstance(payload, dict) else None
    if action not in ACTIONS:
        raise UnknownAction(action)
    return _MESSAGE_ADAPTER.validate_python(payload)


def _error(exc: BaseException) -> dict[str, Any]:
    return {"status": "error", "error": str(exc)}


class MessageRouter:
    """Routes parsed messages to :class:`TabStash` operations.

    Args:
        stash: The orchestrator.
        scheduler: Timer collaborator, consulted by ``getAlarmStatus``.
    """

    def __init__(self, stash: TabStash, scheduler: Scheduler | None = None) -> None:
        self._stash = stash
        self._scheduler = scheduler

    async def dispatch(self, payload: Any) -> dict[str, Any]:
        try:
            message = parse_message(payload)
        except (UnknownAction, ValidationError) as exc:
            logger.warning("Rejected message: %s", exc)
            return _error(exc)
        try:
            return await self.handle(message)
        except TabStashError as exc:
            logger.error("%s failed: %s", message.action, exc)
            return _error(exc)
        except Exception as exc:
            logger.exception("%s failed", message.action)
            return _error(exc)

    async def handle(self, message: Message) -> dict[str, Any]:
        stash = self._stash
        if isinstance(message, UrlDragStarted):
            stash.url_drag_started(message.url)
            return {"status": "ok"}
        if isinstance(message, UrlDropped):
            return {"status": await stash.url_dropped(message.url, message.from_external)}
        if isinstance(message, RemoveUrlFromStorage):
            await stash.remove_url_from_storage(message.url)
            return {"status": "removed"}
        if isinstance(message, CalculateTimeRemaining):
            remaining = stash.calculate_time_remaining(message.saved_at, message.auto_delete_period)
            if remaining.time_remaining is None:
                return {"timeRemaining": None}
            return {
                "timeRemaining": remaining.time_remaining,
                "expirationTime": remaining.expiration_time,
            }
        if isinstance(message, CheckExpiredTabs):
            if message.update_timestamps:
                await stash.update_tab_timestamps(message.period)
                await stash.check_and_remove_expired_tabs()
                return {"status": "completed", "success": True}
            await stash.check_and_remove_expired_tabs()
            return {"status": "completed"}
        if isinstance(message, UpdateTabTimestamps):
            result = await stash.update_tab_timestamps(message.period)
            return {"status": "completed", "result": result.model_dump()}
        if isinstance(message, GetAlarmStatus):
            alarm = self._scheduler.get(EXPIRY_ALARM_NAME) if self._scheduler else None
            if alarm is None:
                return {"exists": False}
            return {"exists": True, "scheduledTime": alarm.scheduled_time}
        raise UnknownAction(getattr(message, "action", None))
