"""Storefront filter facets (key -> values)."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from pydantic import Field, field_validator
from sqlalchemy import select, delete

from app.api.deps import DB, AdminAccess
from app.core.responses import created, ok
from app.models.filter import Filter
from app.schemas.base import BaseCreateSchema, BaseResponseSchema

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/filters", tags=["Filters"])


def capitalize(value: str) -> str:
    """'sIZE' -> 'Size'."""
    value = value.strip()
    return value[:1].upper() + value[1:].lower()


class FilterValues(BaseCreateSchema):
    values: List[str] = Field(..., min_length=1)

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: List[str]) -> List[str]:
        cleaned = [capitalize(item) for item in v if item and item.strip()]
        if not cleaned:
            raise ValueError("Values must be a non-empty list")
        return cleaned


class FilterCreate(FilterValues):
    key: str = Field(..., min_length=1)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return capitalize(v)


class FilterResponse(BaseResponseSchema):
    id: UUID
    key: str
    values: List[str]


async def _get_filter(db, filter_id: UUID) -> Filter:
    item = await db.get(Filter, filter_id)
    if not item:
        raise HTTPException(status_code=404, detail="Filter not found")
    return item


@router.post("/", status_code=201)
async def create_filter(request: FilterCreate, _: AdminAccess, db: DB):
    existing = await db.execute(select(Filter).where(Filter.key == request.key))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"Filter with key '{request.key}' already exists")

    item = Filter(key=request.key, values=request.values)
    db.add(item)
    await db.flush()
    logger.info(f"Filter {item.key} created with {len(item.values)} values")
    return created("Filter created successfully", FilterResponse.model_validate(item))


@router.get("/")
async def list_filters(db: DB):
    result = await db.execute(select(Filter).order_by(Filter.key))
    filters = [FilterResponse.model_validate(f) for f in result.scalars().all()]
    return ok("Filters fetched successfully", filters)


@router.get("/search")
async def search_filters(db: DB, q: str = Query(..., min_length=1)):
    """Case-insensitive match on the key or any value."""
    needle = q.strip().lower()
    result = await db.execute(select(Filter).order_by(Filter.key))
    matches = [
        FilterResponse.model_validate(f)
        for f in result.scalars().all()
        if needle in f.key.lower() or any(needle in v.lower() for v in f.values or [])
    ]
    return ok("Filters fetched successfully", matches)


@router.get("/{filter_id}")
async def get_filter(filter_id: UUID, db: DB):
    item = await _get_filter(db, filter_id)
    return ok("Filter fetched successfully", FilterResponse.model_validate(item))


@router.put("/{filter_id}")
async def update_filter(filter_id: UUID, request: FilterValues, _: AdminAccess, db: DB):
    item = await _get_filter(db, filter_id)
    item.values = request.values
    await db.flush()
    return ok("Filter updated successfully", FilterResponse.model_validate(item))


@router.delete("/{filter_id}")
async def delete_filter(filter_id: UUID, _: AdminAccess, db: DB):
    await _get_filter(db, filter_id)
    await db.execute(delete(Filter).where(Filter.id == filter_id))
    return ok("Filter deleted successfully")
