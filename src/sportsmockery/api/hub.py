"""Team hub cards: trade rumors, draft notes, cap moves."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from sportsmockery.api.deps import RepoDep
from sportsmockery.auth.deps import AdminUser
from sportsmockery.db.models import HubItemRow

router = APIRouter(prefix="/api/hub", tags=["hub"])

HubItemType = Literal["trade_rumor", "draft_note", "cap_move", "injury_update", "news"]
HubStatus = Literal["draft", "published", "archived"]


class HubItemCreateRequest(BaseModel):
    team_slug: str = Field(min_length=1, max_length=50)
    page_slug: str = Field(min_length=1, max_length=100)
    item_type: HubItemType = "trade_rumor"
    headline: str = Field(min_length=1, max_length=300)
    body: str = ""
    source_name: str | None = None
    source_url: str | None = None
    status: HubStatus = "published"
    display_order: int = 0


class HubItemUpdateRequest(BaseModel):
    item_type: HubItemType | None = None
    headline: str | None = Field(default=None, min_length=1, max_length=300)
    body: str | None = None
    source_name: str | None = None
    source_url: str | None = None
    status: HubStatus | None = None
    display_order: int | None = None

    @field_validator("item_type", "headline", "body", "status", "display_order")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


def _item_dict(item: HubItemRow) -> dict:
    return {
        "id": item.id,
        "team_slug": item.team_slug,
        "page_slug": item.page_slug,
        "item_type": item.item_type,
        "headline": item.headline,
        "body": item.body,
        "source_name": item.source_name,
        "source_url": item.source_url,
        "status": item.status,
        "display_order": item.display_order,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


@router.get("")
async def list_items(repo: RepoDep, team: str | None = None, page: str | None = None) -> dict:
    """Published items, newest first."""
    items = await repo.list_hub_items(team_slug=team, page_slug=page)
    return {"items": [_item_dict(i) for i in items]}


@router.post("", status_code=201)
async def create_item(body: HubItemCreateRequest, repo: RepoDep, _admin: AdminUser) -> dict:
    """Create a hub item (admin)."""
    item = await repo.create_hub_item(**body.model_dump())
    return {"item": _item_dict(item)}


@router.patch("/{item_id}")
async def update_item(item_id: int, body: HubItemUpdateRequest, repo: RepoDep, _admin: AdminUser) -> dict:
    """Partial update of a hub item (admin)."""
    item = await repo.get_hub_item(item_id)
    if item is None:
        raise HTTPException(404, "Hub item not found")
    item = await repo.update_hub_item(item, body.model_dump(exclude_unset=True))
    return {"item": _item_dict(item)}


@router.delete("/{item_id}")
async def delete_item(item_id: int, repo: RepoDep, _admin: AdminUser) -> dict:
    item = await repo.get_hub_item(item_id)
    if item is None:
        raise HTTPException(404, "Hub item not found")
    await repo.delete_hub_item(item)
    return {"success": True}
