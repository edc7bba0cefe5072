"""FastAPI backend exposing the host message surface over HTTP.

The saved-tabs page and browser glue post host messages to
``/api/messages``; REST endpoints give read access to the collections
and cover category management.  Browser glue also reports new tabs to
``/api/tabs/created`` so a URL dragged out of the saved-tabs page is
removed once it opens.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tabstash.core.defaults import DEFAULT_STORE_PATH
from tabstash.core.store import BlobStore, JsonFileBlobStore
from tabstash.core.types import SubCategoryKeyword, Tab, dump_records
from tabstash.host.messages import MessageRouter
from tabstash.host.scheduler import AsyncioScheduler, startup
from tabstash.tabs.service import TabStash

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class SaveTabsRequest(BaseModel):
    tabs: list[Tab]


class SaveTabsResponse(BaseModel):
    saved_count: int
    created_ids: list[str]
    skipped: list[str]


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1)


class DomainSettingsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    domain: str
    sub_categories: list[str] = Field(default_factory=list)
    category_keywords: list[SubCategoryKeyword] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    *,
    store: BlobStore | None = None,
    store_path: Path = Path(DEFAULT_STORE_PATH),
    scheduler: AsyncioScheduler | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        store: Blob store to use; defaults to a JSON file at *store_path*.
        store_path: Location of the JSON store when *store* is not given.
        scheduler: Timer for the expiry alarm.  A fresh
            :class:`AsyncioScheduler` is used when omitted.
    """
    stash = TabStash(store if store is not None else JsonFileBlobStore(store_path))
    alarms = scheduler or AsyncioScheduler()
    router = MessageRouter(stash, alarms)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):  # type: ignore[no-untyped-def]
        await startup(stash, alarms)
        yield
        alarms.clear_all()

    app = FastAPI(
        title="tabstash",
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # -- host messages ----------------------------------------------------------

    @app.post("/api/messages")
    async def post_message(payload: dict[str, Any]) -> dict[str, Any]:
        return await router.dispatch(payload)

    # -- host tab events --------------------------------------------------------

    @app.post("/api/tabs/created")
    async def tab_created(tab: Tab) -> dict[str, bool]:
        return {"removed": await stash.tab_created(tab)}

    # -- REST: groups -----------------------------------------------------------

    @app.get("/api/groups")
    async def list_groups() -> list[dict[str, Any]]:
        return dump_records(await stash.get_groups())

    @app.post("/api/groups", status_code=201)
    async def save_tabs(body: SaveTabsRequest) -> SaveTabsResponse:
        outcome = await stash.save_tabs_with_auto_category(body.tabs)
        return SaveTabsResponse(
            saved_count=outcome.saved_count,
            created_ids=outcome.created_ids,
            skipped=outcome.skipped,
        )

    @app.delete("/api/groups/{group_id}")
    async def delete_group(group_id: str) -> dict[str, Any]:
        result = await stash.remove_group(group_id)
        if not result.changed:
            raise HTTPException(status_code=404, detail=f"unknown group {group_id!r}")
        return {"removed": result.removed_group_ids}

    @app.put("/api/domains/settings")
    async def put_domain_settings(body: DomainSettingsRequest) -> dict[str, bool]:
        applied = await stash.update_domain_category_settings(
            body.domain, body.sub_categories, body.category_keywords
        )
        return {"applied": applied}

    # -- REST: parent categories ------------------------------------------------

    @app.get("/api/categories")
    async def list_categories() -> list[dict[str, Any]]:
        return dump_records(await stash.get_parent_categories())

    @app.post("/api/categories", status_code=201)
    async def create_category(body: CategoryCreateRequest) -> dict[str, Any]:
        try:
            category = await stash.create_parent_category(body.name)
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return dump_records([category])[0]

    @app.put("/api/categories/{category_id}/groups/{group_id}")
    async def assign_group(category_id: str, group_id: str) -> dict[str, str]:
        try:
            await stash.assign_group_to_category(group_id, category_id)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"status": "assigned"}

    # -- REST: settings (read-only) ---------------------------------------------

    @app.get("/api/settings")
    async def get_settings() -> dict[str, Any]:
        settings = await stash.get_settings()
        return settings.model_dump(mode="json", by_alias=True)

    return app
