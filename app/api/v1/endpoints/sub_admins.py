"""
SubAdmin Management API Endpoints

The Admin creates, browses, edits and (de)activates sub-administrators.
A deactivated SubAdmin keeps its account but is refused by every
admin-area route.
"""

import logging
import math
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import DB, AdminAccess, AdminOnly
from app.core.responses import created, ok
from app.models.item import Item
from app.models.order import UserOrder
from app.models.partner import Partner
from app.models.partner_order import PartnerOrder
from app.models.user import Role, User
from app.schemas.base import PageParams, page_params
from app.schemas.sub_admin import SubAdminCreate, SubAdminUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/sub-admins", tags=["SubAdmins"])


def _sub_admin_dict(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "name": user.name,
        "phone_number": user.phone_number,
        "email": user.email,
        "role": user.role,
        "permissions": user.permissions or [],
        "is_active": user.is_active,
        "is_sub_admin_active": user.is_sub_admin_active,
        "assigned_by": str(user.assigned_by) if user.assigned_by else None,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


async def _get_sub_admin(db: AsyncSession, sub_admin_id: UUID) -> User:
    user = await db.get(User, sub_admin_id)
    if not user or user.role != Role.SUB_ADMIN.value:
        raise HTTPException(status_code=404, detail="SubAdmin not found")
    return user


async def _email_taken(db: AsyncSession, email: str, exclude: Optional[UUID] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude is not None:
        stmt = stmt.where(User.id != exclude)
    return await db.scalar(stmt.limit(1)) is not None


@router.post("/", status_code=201)
async def create_sub_admin(request: SubAdminCreate, admin: AdminOnly, db: DB):
    if await db.scalar(select(User.id).where(User.phone_number == request.phone_number)):
        raise HTTPException(status_code=400, detail="Phone number already exists")
    if await _email_taken(db, request.email):
        raise HTTPException(status_code=400, detail="Email already exists")

    sub_admin = User(
        name=request.name,
        phone_number=request.phone_number,
        email=request.email,
        role=Role.SUB_ADMIN.value,
        permissions=request.permissions,
        is_active=True,
        is_sub_admin_active=True,
        is_phone_verified=True,
        assigned_by=admin.id,
    )
    db.add(sub_admin)
    await db.flush()

    logger.info(f"Admin {admin.id} created SubAdmin {sub_admin.id}")
    return created("SubAdmin created successfully", _sub_admin_dict(sub_admin))


@router.get("/")
async def list_sub_admins(
    _: AdminOnly,
    db: DB,
    params: PageParams = Depends(page_params),
    search: str = Query(""),
):
    conditions = [User.role == Role.SUB_ADMIN.value]
    if search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(or_(
            User.name.ilike(pattern),
            User.phone_number.ilike(pattern),
            User.email.ilike(pattern),
        ))

    total = await db.scalar(select(func.count(User.id)).where(*conditions)) or 0
    result = await db.execute(
        select(User).where(*conditions)
        .order_by(User.created_at.desc())
        .offset(params.offset).limit(params.limit)
    )
    total_pages = math.ceil(total / params.limit) if total else 0

    return ok("SubAdmins retrieved successfully", {
        "sub_admins": [_sub_admin_dict(u) for u in result.scalars().all()],
        "pagination": {
            "current_page": params.page,
            "total_pages": total_pages,
            "total_sub_admins": total,
            "has_next_page": params.page < total_pages,
            "has_prev_page": params.page > 1,
            "limit": params.limit,
        },
    })


@router.get("/dashboard/stats")
async def dashboard_stats(_: AdminAccess, db: DB):
    """Catalogue, order and account counts for the admin dashboard."""
    return ok("Dashboard stats retrieved successfully", {
        "total_items": await db.scalar(select(func.count(Item.id))) or 0,
        "total_orders": await db.scalar(select(func.count(UserOrder.id))) or 0,
        "total_partner_orders": await db.scalar(select(func.count(PartnerOrder.id))) or 0,
        "total_users": await db.scalar(
            select(func.count(User.id)).where(User.role == Role.USER.value)
        ) or 0,
        "total_partners": await db.scalar(select(func.count(Partner.id))) or 0,
    })


@router.get("/{sub_admin_id}")
async def get_sub_admin(sub_admin_id: UUID, _: AdminOnly, db: DB):
    sub_admin = await _get_sub_admin(db, sub_admin_id)
    return ok("SubAdmin retrieved successfully", _sub_admin_dict(sub_admin))


@router.put("/{sub_admin_id}")
async def update_sub_admin(sub_admin_id: UUID, request: SubAdminUpdate, _: AdminOnly, db: DB):
    sub_admin = await _get_sub_admin(db, sub_admin_id)

    update_data = request.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in update_data and await _email_taken(db, update_data["email"], exclude=sub_admin.id):
        raise HTTPException(status_code=400, detail="Email already exists")

    for field, value in update_data.items():
        setattr(sub_admin, field, value)
    await db.flush()

    logger.info(f"SubAdmin {sub_admin.id} updated: {', '.join(sorted(update_data)) or 'no changes'}")
    return ok("SubAdmin updated successfully", _sub_admin_dict(sub_admin))


async def _set_active(db: AsyncSession, sub_admin_id: UUID, active: bool) -> User:
    sub_admin = await _get_sub_admin(db, sub_admin_id)
    sub_admin.is_sub_admin_active = active
    await db.flush()
    logger.info(f"SubAdmin {sub_admin.id} {'activated' if active else 'deactivated'}")
    return sub_admin


@router.put("/{sub_admin_id}/activate")
async def activate_sub_admin(sub_admin_id: UUID, _: AdminOnly, db: DB):
    sub_admin = await _set_active(db, sub_admin_id, True)
    return ok("SubAdmin activated successfully", _sub_admin_dict(sub_admin))


@router.put("/{sub_admin_id}/deactivate")
async def deactivate_sub_admin(sub_admin_id: UUID, _: AdminOnly, db: DB):
    sub_admin = await _set_active(db, sub_admin_id, False)
    return ok("SubAdmin deactivated successfully", _sub_admin_dict(sub_admin))
