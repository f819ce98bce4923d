"""Admin tooling for seeding and purging demo users and reviews."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from app.api.deps import DB, AdminOnly
from app.core.responses import created, ok
from app.services.fake_data_service import FakeDataError, FakeDataService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/fake", tags=["Fake Data"])


class FakeUsersRequest(BaseModel):
    count: int = Field(..., ge=1, le=500)


class FakeReviewsRequest(BaseModel):
    item_id: UUID
    count: int = Field(..., ge=1, le=500)


def _user_dict(user) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
    }


@router.post("/users", status_code=201)
async def create_fake_users(request: FakeUsersRequest, _: AdminOnly, db: DB):
    users = await FakeDataService(db).create_users(request.count)
    return created(f"{len(users)} fake users created", [_user_dict(u) for u in users])


@router.get("/users")
async def list_fake_users(_: AdminOnly, db: DB):
    users = await FakeDataService(db).list_users()
    return ok("Fake users retrieved successfully", {
        "count": len(users),
        "fake_users": [_user_dict(u) for u in users],
    })


@router.delete("/users")
async def delete_fake_users(_: AdminOnly, db: DB):
    try:
        deleted = await FakeDataService(db).delete_users()
    except FakeDataError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(f"{deleted} fake users deleted")


@router.delete("/users/{user_id}")
async def delete_fake_user(user_id: UUID, _: AdminOnly, db: DB):
    try:
        await FakeDataService(db).delete_user(user_id)
    except FakeDataError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Fake user deleted successfully", {"user_id": str(user_id)})


@router.post("/reviews", status_code=201)
async def create_fake_reviews(request: FakeReviewsRequest, _: AdminOnly, db: DB):
    try:
        data = await FakeDataService(db).create_reviews(request.item_id, request.count)
    except FakeDataError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return created(f"{len(data['reviews'])} positive fake reviews created", data)


@router.get("/reviews")
async def list_fake_reviews(_: AdminOnly, db: DB, item_id: UUID = Query(...)):
    try:
        reviews = await FakeDataService(db).list_reviews(item_id)
    except FakeDataError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Fake reviews retrieved successfully", {"count": len(reviews), "reviews": reviews})


@router.delete("/reviews")
async def delete_fake_reviews(_: AdminOnly, db: DB, item_id: UUID = Query(...)):
    try:
        data = await FakeDataService(db).delete_reviews(item_id)
    except FakeDataError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok(f"{data['deleted']} fake reviews deleted", data)
