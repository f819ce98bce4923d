"""Try-before-you-buy image submissions for the signed-in shopper."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.api.deps import DB, CurrentUser
from app.core.responses import created, ok
from app.models.item import Item
from app.models.tbyb import UserTBYB

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tbyb", tags=["TBYB"])


class TBYBImage(BaseModel):
    item_id: UUID
    tbyb_image_url: List[str] = Field(..., min_length=1)

    @field_validator("tbyb_image_url")
    @classmethod
    def validate_urls(cls, v: List[str]) -> List[str]:
        urls = [url.strip() for url in v if url and url.strip()]
        if not urls:
            raise ValueError("tbyb_image_url must be a non-empty array")
        return urls


class TBYBCreate(BaseModel):
    images: List[TBYBImage] = Field(..., min_length=1)


def _entry_dict(entry: UserTBYB) -> dict:
    return {
        "id": str(entry.id),
        "item_id": str(entry.item_id) if entry.item_id else None,
        "item": entry.item.summary() if entry.item else None,
        "tbyb_image_urls": entry.tbyb_image_urls,
        "created_at": entry.created_at,
    }


@router.post("/", status_code=201)
async def create_tbyb_entries(request: TBYBCreate, user: CurrentUser, db: DB):
    item_ids = {image.item_id for image in request.images}
    result = await db.execute(select(Item).where(Item.id.in_(item_ids)))
    items = {item.id: item for item in result.scalars().all()}

    missing = item_ids - set(items)
    if missing:
        raise HTTPException(status_code=404, detail=f"Item not found: {', '.join(sorted(map(str, missing)))}")

    entries = [
        UserTBYB(user_id=user.id, item_id=image.item_id, tbyb_image_urls=image.tbyb_image_url)
        for image in request.images
    ]
    db.add_all(entries)
    await db.flush()
    for entry in entries:
        entry.item = items[entry.item_id]

    logger.info(f"User {user.id} submitted {len(entries)} TBYB entries")
    return created("TBYB entry created successfully", [_entry_dict(e) for e in entries])


@router.get("/")
async def list_tbyb_entries(user: CurrentUser, db: DB):
    result = await db.execute(
        select(UserTBYB)
        .options(selectinload(UserTBYB.item))
        .where(UserTBYB.user_id == user.id)
        .order_by(UserTBYB.created_at.desc())
    )
    entries = [_entry_dict(e) for e in result.scalars().all()]
    return ok("TBYB entries retrieved successfully", entries)
