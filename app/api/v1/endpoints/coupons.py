"""
Coupon API Endpoints

Admin management of promo codes, plus redemption at checkout for shoppers
and partners.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import delete, select, func, or_
from sqlalchemy.exc import IntegrityError

from app.api.deps import DB, AdminOnly, CurrentPartner, CurrentUser
from app.core.responses import created, ok
from app.db_types import utcnow
from app.models.coupon import Coupon, CouponUsage
from app.models.user import Role
from app.schemas.coupon import (
    ApplyCouponRequest,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)
from app.services.coupon_service import CouponError, CouponService, check_coupon_rules

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coupons", tags=["Coupons"])

SORT_FIELDS = {
    "created_at": Coupon.created_at,
    "updated_at": Coupon.updated_at,
    "coupon_code": Coupon.coupon_code,
    "discount_value": Coupon.discount_value,
    "expiration_date": Coupon.expiration_date,
    "is_active": Coupon.is_active,
}


def _serialize(coupon: Coupon) -> dict:
    return CouponResponse.model_validate(coupon).model_dump()


# ==================== Admin Endpoints ====================

@router.post("/", status_code=201)
async def create_coupon(request: CouponCreate, _: AdminOnly, db: DB):
    fields = request.model_dump()
    fields["discount_type"] = request.discount_type.value
    try:
        check_coupon_rules(fields)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if await CouponService(db).get_by_code(request.coupon_code):
        raise HTTPException(status_code=400, detail="Coupon code already exists")

    coupon = Coupon(**fields)
    db.add(coupon)
    await db.flush()
    await db.refresh(coupon)

    logger.info(f"Coupon {coupon.coupon_code} created")
    return created("Coupon created successfully", _serialize(coupon))


@router.get("/")
async def list_coupons(
    _: AdminOnly,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    status: str = Query("all", description="all, active, inactive, expired"),
    discount_type: str = Query("all"),
    min_value: Optional[float] = Query(None),
    max_value: Optional[float] = Query(None),
):
    """
    Paginated coupon listing with search, status/type/value filters and
    whitelisted sorting. Unknown sort fields fall back to created_at.
    """
    conditions = []
    now = utcnow()

    if search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(or_(
            Coupon.coupon_code.ilike(pattern),
            Coupon.description.ilike(pattern),
            Coupon.discount_type.ilike(pattern),
        ))

    if status == "active":
        conditions.extend([Coupon.is_active == True, Coupon.expiration_date > now])
    elif status == "inactive":
        conditions.append(Coupon.is_active == False)
    elif status == "expired":
        conditions.append(Coupon.expiration_date <= now)

    if discount_type != "all":
        conditions.append(Coupon.discount_type == discount_type)
    if min_value is not None:
        conditions.append(Coupon.discount_value >= min_value)
    if max_value is not None:
        conditions.append(Coupon.discount_value <= max_value)

    sort_field = sort_by if sort_by in SORT_FIELDS else "created_at"
    column = SORT_FIELDS[sort_field]
    order = column.asc() if sort_order == "asc" else column.desc()

    total = await db.scalar(select(func.count(Coupon.id)).where(*conditions)) or 0
    result = await db.execute(
        select(Coupon).where(*conditions).order_by(order).offset((page - 1) * limit).limit(limit)
    )
    coupons = [_serialize(c) for c in result.scalars().all()]
    total_pages = math.ceil(total / limit) if total else 0

    return ok("Coupons retrieved successfully", {
        "coupons": coupons,
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_coupons": total,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
            "limit": limit,
        },
        "filters": {
            "search": search,
            "status": status,
            "discount_type": discount_type,
            "min_value": min_value,
            "max_value": max_value,
            "sort_by": sort_field,
            "sort_order": sort_order,
        },
    })


@router.put("/{coupon_code}")
async def update_coupon(coupon_code: str, request: CouponUpdate, _: AdminOnly, db: DB):
    coupon = await CouponService(db).get_by_code(coupon_code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    changes = request.model_dump(exclude_unset=True)
    if changes.get("discount_type") is not None:
        changes["discount_type"] = request.discount_type.value

    merged = {
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "minimum_purchase": coupon.minimum_purchase,
        "expiration_date": coupon.expiration_date,
        "max_uses": coupon.max_uses,
        "uses_per_user": coupon.uses_per_user,
        "max_discount": coupon.max_discount,
        **changes,
    }
    try:
        check_coupon_rules(merged)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    for field, value in changes.items():
        setattr(coupon, field, value)

    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    await db.refresh(coupon)

    return ok("Coupon updated successfully", _serialize(coupon))


@router.delete("/{coupon_code}")
async def delete_coupon(coupon_code: str, _: AdminOnly, db: DB):
    coupon = await CouponService(db).get_by_code(coupon_code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    code = coupon.coupon_code
    await db.execute(delete(CouponUsage).where(CouponUsage.coupon_id == coupon.id))
    await db.execute(delete(Coupon).where(Coupon.id == coupon.id))
    logger.info(f"Coupon {code} deleted")
    return ok("Coupon deleted successfully", {"coupon_code": code})


# ==================== Redemption ====================

@router.post("/apply")
async def apply_coupon(request: ApplyCouponRequest, user: CurrentUser, db: DB):
    try:
        data = await CouponService(db).apply(
            request.coupon_code, user.id, Role.USER, request.total_amount, request.categories
        )
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Coupon applied successfully", data)


@router.post("/partner/apply")
async def apply_coupon_for_partner(request: ApplyCouponRequest, partner: CurrentPartner, db: DB):
    try:
        data = await CouponService(db).apply(
            request.coupon_code, partner.id, Role.PARTNER, request.total_amount, request.categories
        )
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Coupon applied successfully", data)
