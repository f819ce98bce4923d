"""
Admin Order API Endpoints

Order browsing, filtering, counts and revenue for administrators and
sub-administrators. Every order returned here goes through the enrichment
pipeline.
"""

import calendar
import logging
import math
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import DB, AdminAccess
from app.core.responses import api_response, ok
from app.db_types import utcnow
from app.models.item import Item
from app.models.order import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    UserOrder,
    UserOrderItem,
)
from app.models.partner_order import PartnerOrder, PartnerOrderItem, PartnerOrderStatus
from app.schemas.base import PageParams, page_params
from app.services.order_enrichment import (
    partner_orders_query,
    populate_order_details,
    user_orders_query,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/orders", tags=["Admin Orders"])


# ==================== Filters ====================

USER_STATUSES = {s.value.lower(): s.value for s in OrderStatus}
PARTNER_STATUSES = {s.value.lower(): s.value for s in PartnerOrderStatus}

USER_PAYMENT_MODES = {
    "online": UserOrder.payment_method == PaymentMethod.ONLINE.value,
    "cod": UserOrder.payment_method == PaymentMethod.COD.value,
}
PARTNER_PAYMENT_MODES = {
    "online": PartnerOrder.is_online_payment == True,
    "cod": PartnerOrder.is_cod_payment == True,
    "cheque": PartnerOrder.is_cheque_payment == True,
    "wallet": PartnerOrder.is_wallet_payment == True,
}

USER_BUCKETS = {
    "pending": UserOrder.payment_status == PaymentStatus.PENDING.value,
    "cancelled": UserOrder.order_status == OrderStatus.CANCELLED.value,
    "returned": UserOrder.order_status.in_(
        [OrderStatus.RETURNED.value, OrderStatus.PARTIALLY_RETURNED.value]
    ),
    "exchanged": UserOrder.order_status.in_(
        [OrderStatus.EXCHANGED.value, OrderStatus.PARTIALLY_EXCHANGED.value]
    ),
    "dispatched": UserOrder.order_status == OrderStatus.DISPATCHED.value,
}
PARTNER_BUCKETS = {
    "pending": PartnerOrder.payment_status == PaymentStatus.PENDING.value,
    "returned": PartnerOrder.order_status.in_(
        [PartnerOrderStatus.ORDER_RETURNED.value, PartnerOrderStatus.PARTIALLY_RETURNED.value]
    ),
    "dispatched": PartnerOrder.order_status == PartnerOrderStatus.DISPATCHED.value,
}

USER_COUNT_METRICS = {
    "total": None,
    "confirmed": UserOrder.order_status == OrderStatus.CONFIRMED.value,
    **USER_BUCKETS,
}
PARTNER_COUNT_METRICS = {
    "total": None,
    "confirmed": PartnerOrder.order_status == PartnerOrderStatus.CONFIRMED.value,
    **PARTNER_BUCKETS,
}

REVENUE_WINDOWS = ("lastDay", "lastWeek", "lastMonth", "lastYear")


def _choice(value: str, options: dict, label: str):
    key = value.strip().lower()
    if key not in options:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {label}. Must be one of: {', '.join(options)}",
        )
    return options[key]


def _shift_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def revenue_window(filter_type: str, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Start of the window's first day through the end of today (UTC)."""
    now = now or utcnow()
    if filter_type == "lastDay":
        start = now
    elif filter_type == "lastWeek":
        start = now - timedelta(days=7)
    elif filter_type == "lastMonth":
        start = _shift_months(now, -1)
    elif filter_type == "lastYear":
        start = _shift_months(now, -12)
    else:
        raise ValueError(f"Invalid filter type: {filter_type}")

    start = datetime.combine(start.date(), time.min, tzinfo=timezone.utc)
    end = datetime.combine(now.date(), time.max, tzinfo=timezone.utc)
    return start, end


# ==================== Helpers ====================

async def _paged_orders(db: AsyncSession, base_query, model, params: PageParams, *conditions):
    stmt = base_query.where(*conditions).order_by(model.created_at.desc())
    total = await db.scalar(select(func.count(model.id)).where(*conditions)) or 0
    result = await db.execute(stmt.offset(params.offset).limit(params.limit))
    orders = await populate_order_details(db, list(result.scalars().all()))
    return {
        "orders": orders,
        "total_orders": total,
        "total_pages": math.ceil(total / params.limit) if total else 0,
        "current_page": params.page,
    }


async def _paid_revenue(db: AsyncSession, model, *conditions) -> float:
    total = await db.scalar(
        select(func.coalesce(func.sum(model.total_amount), 0)).where(
            model.payment_status == PaymentStatus.PAID.value, *conditions
        )
    )
    return float(total or 0)


async def _get_user_order(db: AsyncSession, order_number: str) -> UserOrder:
    result = await db.execute(user_orders_query().where(UserOrder.order_number == order_number))
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ==================== User Orders ====================

@router.get("/users/{user_id}")
async def get_user_order_details(
    user_id: uuid.UUID,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    """All orders placed by one user."""
    data = await _paged_orders(db, user_orders_query(), UserOrder, params, UserOrder.user_id == user_id)
    if not data["total_orders"]:
        return api_response(404, False, "No orders found for this user", data)
    return ok("User orders fetched successfully", data)


@router.get("/all")
async def get_all_orders(_: AdminAccess, db: DB):
    result = await db.execute(user_orders_query().order_by(UserOrder.created_at.desc()))
    orders = await populate_order_details(db, list(result.scalars().all()))
    return ok("All orders fetched successfully", {"orders": orders, "total_orders": len(orders)})


@router.get("/users")
async def get_all_user_orders(_: AdminAccess, db: DB, params: PageParams = Depends(page_params)):
    data = await _paged_orders(db, user_orders_query(), UserOrder, params)
    return ok("User orders fetched successfully", data)


@router.get("/users/status/{order_status}")
async def filter_user_orders_by_status(
    order_status: str,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    status_value = _choice(order_status, USER_STATUSES, "order status")
    data = await _paged_orders(
        db, user_orders_query(), UserOrder, params, UserOrder.order_status == status_value
    )
    return ok(f"Orders with status {status_value} fetched successfully", data)


@router.get("/users/payment/{mode}")
async def filter_user_orders_by_payment_mode(
    mode: str,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    condition = _choice(mode, USER_PAYMENT_MODES, "payment mode")
    data = await _paged_orders(db, user_orders_query(), UserOrder, params, condition)
    return ok(f"Orders paid via {mode.lower()} fetched successfully", data)


@router.get("/users/count/{metric}")
async def count_user_orders(metric: str, _: AdminAccess, db: DB):
    condition = _choice(metric, USER_COUNT_METRICS, "metric")
    stmt = select(func.count(UserOrder.id))
    if condition is not None:
        stmt = stmt.where(condition)
    count = await db.scalar(stmt) or 0
    return ok(f"Total {metric.lower()} user orders fetched successfully", {"count": count})


@router.get("/users/list/{bucket}")
async def list_user_orders_in_bucket(bucket: str, _: AdminAccess, db: DB):
    condition = _choice(bucket, USER_BUCKETS, "order bucket")
    result = await db.execute(
        user_orders_query().where(condition).order_by(UserOrder.created_at.desc())
    )
    orders = await populate_order_details(db, list(result.scalars().all()))
    return ok(f"{bucket.capitalize()} orders fetched successfully", {"orders": orders, "total_orders": len(orders)})


# ==================== Partner Orders ====================

@router.get("/partners")
async def get_all_partner_orders(_: AdminAccess, db: DB, params: PageParams = Depends(page_params)):
    data = await _paged_orders(db, partner_orders_query(), PartnerOrder, params)
    return ok("Partner orders fetched successfully", data)


@router.get("/partners/status/{order_status}")
async def filter_partner_orders_by_status(
    order_status: str,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    status_value = _choice(order_status, PARTNER_STATUSES, "order status")
    data = await _paged_orders(
        db, partner_orders_query(), PartnerOrder, params, PartnerOrder.order_status == status_value
    )
    return ok(f"Partner orders with status {status_value} fetched successfully", data)


@router.get("/partners/payment/{mode}")
async def filter_partner_orders_by_payment_mode(
    mode: str,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    condition = _choice(mode, PARTNER_PAYMENT_MODES, "payment mode")
    data = await _paged_orders(db, partner_orders_query(), PartnerOrder, params, condition)
    return ok(f"Partner orders paid via {mode.lower()} fetched successfully", data)


@router.get("/partners/count/{metric}")
async def count_partner_orders(metric: str, _: AdminAccess, db: DB):
    condition = _choice(metric, PARTNER_COUNT_METRICS, "metric")
    stmt = select(func.count(PartnerOrder.id))
    if condition is not None:
        stmt = stmt.where(condition)
    count = await db.scalar(stmt) or 0
    return ok(f"Total {metric.lower()} partner orders fetched successfully", {"count": count})


@router.get("/partners/list/{bucket}")
async def list_partner_orders_in_bucket(bucket: str, _: AdminAccess, db: DB):
    condition = _choice(bucket, PARTNER_BUCKETS, "order bucket")
    result = await db.execute(
        partner_orders_query().where(condition).order_by(PartnerOrder.created_at.desc())
    )
    orders = await populate_order_details(db, list(result.scalars().all()))
    return ok(
        f"{bucket.capitalize()} partner orders fetched successfully",
        {"orders": orders, "total_orders": len(orders)},
    )


@router.get("/partners/{partner_id}")
async def get_partner_order_details(
    partner_id: uuid.UUID,
    _: AdminAccess,
    db: DB,
    params: PageParams = Depends(page_params),
):
    data = await _paged_orders(
        db, partner_orders_query(), PartnerOrder, params, PartnerOrder.partner_id == partner_id
    )
    if not data["total_orders"]:
        return api_response(404, False, "No orders found for this partner", data)
    return ok("Partner orders fetched successfully", data)


# ==================== Revenue ====================

@router.get("/revenue/total")
async def get_total_revenue(_: AdminAccess, db: DB):
    """Sum of paid user and partner orders."""
    user_revenue = await _paid_revenue(db, UserOrder)
    partner_revenue = await _paid_revenue(db, PartnerOrder)
    return ok("Total revenue fetched successfully", {
        "user_revenue": user_revenue,
        "partner_revenue": partner_revenue,
        "total_revenue": user_revenue + partner_revenue,
    })


@router.get("/revenue")
async def get_filtered_revenue(
    _: AdminAccess,
    db: DB,
    filter_type: str = Query(..., description="lastDay, lastWeek, lastMonth or lastYear"),
):
    if filter_type not in REVENUE_WINDOWS:
        raise HTTPException(
            status_code=400,
            detail="Invalid filter type. Use lastDay, lastWeek, lastMonth, or lastYear",
        )
    start, end = revenue_window(filter_type)

    user_revenue = await _paid_revenue(db, UserOrder, UserOrder.created_at.between(start, end))
    partner_revenue = await _paid_revenue(db, PartnerOrder, PartnerOrder.created_at.between(start, end))

    logger.info(f"Revenue {filter_type}: user={user_revenue} partner={partner_revenue}")
    return ok("Filtered total revenue fetched successfully", {
        "user_revenue": user_revenue,
        "partner_revenue": partner_revenue,
        "total_revenue": user_revenue + partner_revenue,
        "filter_type": filter_type,
        "start_date": start,
        "end_date": end,
    })


# ==================== Items ====================

@router.get("/items/top")
async def get_items_by_ordered_number(_: AdminAccess, db: DB, params: PageParams = Depends(page_params)):
    """Catalog items ranked by units ordered across user and partner orders."""
    user_rows = await db.execute(
        select(UserOrderItem.item_id, func.sum(UserOrderItem.quantity))
        .where(UserOrderItem.item_id.is_not(None))
        .group_by(UserOrderItem.item_id)
    )
    partner_rows = await db.execute(
        select(PartnerOrderItem.item_id, func.sum(PartnerOrderItem.total_quantity))
        .where(PartnerOrderItem.item_id.is_not(None))
        .group_by(PartnerOrderItem.item_id)
    )

    totals: dict[uuid.UUID, dict] = {}
    for item_id, quantity in user_rows.all():
        totals.setdefault(item_id, {"user_ordered": 0, "partner_ordered": 0})["user_ordered"] = int(quantity or 0)
    for item_id, quantity in partner_rows.all():
        totals.setdefault(item_id, {"user_ordered": 0, "partner_ordered": 0})["partner_ordered"] = int(quantity or 0)

    ranked = sorted(
        totals.items(),
        key=lambda pair: pair[1]["user_ordered"] + pair[1]["partner_ordered"],
        reverse=True,
    )
    page = ranked[params.offset:params.offset + params.limit]

    items = {}
    if page:
        result = await db.execute(select(Item).where(Item.id.in_([item_id for item_id, _ in page])))
        items = {item.id: item.summary() for item in result.scalars().all()}

    rows = [
        {
            "item_id": str(item_id),
            "item": items.get(item_id),
            "total_ordered": counts["user_ordered"] + counts["partner_ordered"],
            **counts,
        }
        for item_id, counts in page
    ]
    return ok("Items by ordered number fetched successfully", {
        "items": rows,
        "total_items": len(ranked),
        "total_pages": math.ceil(len(ranked) / params.limit) if ranked else 0,
        "current_page": params.page,
    })


# ==================== Status maintenance ====================

class OrderStatusUpdate(BaseModel):
    order_number: str
    order_status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    order_number: str
    payment_status: PaymentStatus


class RefundStatusUpdate(BaseModel):
    order_number: str
    item_id: uuid.UUID
    refund_status: RefundStatus


@router.put("/users/status")
async def update_order_status(request: OrderStatusUpdate, _: AdminAccess, db: DB):
    order = await _get_user_order(db, request.order_number)
    order.order_status = request.order_status.value
    order.order_status_date = utcnow()
    await db.flush()
    logger.info(f"Order {order.order_number} moved to {order.order_status}")
    return ok("Order status updated successfully", await populate_order_details(db, order))


@router.put("/users/payment-status")
async def update_payment_status(request: PaymentStatusUpdate, _: AdminAccess, db: DB):
    order = await _get_user_order(db, request.order_number)
    if order.payment_method != PaymentMethod.COD.value:
        raise HTTPException(status_code=400, detail="Payment status can only be updated for COD orders")
    order.payment_status = request.payment_status.value
    await db.flush()
    return ok("Payment status updated successfully", await populate_order_details(db, order))


@router.put("/users/refund-status")
async def update_item_refund_status(request: RefundStatusUpdate, _: AdminAccess, db: DB):
    order = await _get_user_order(db, request.order_number)
    line = next((line for line in order.items if line.item_id == request.item_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail=f"Item with ID {request.item_id} not found in order details")
    if not line.is_return:
        raise HTTPException(status_code=400, detail=f"No return initiated for item with ID {request.item_id}")

    # Reassign so the JSON column is flagged dirty
    line.return_info = {**(line.return_info or {}), "refund_status": request.refund_status.value}
    await db.flush()
    logger.info(f"Refund status for item {request.item_id} in {order.order_number}: {request.refund_status.value}")
    return ok("Refund status updated successfully", await populate_order_details(db, order))


class DeliveryDateUpdate(BaseModel):
    order_number: str
    delivery_date: datetime


class RefundTransactionUpdate(BaseModel):
    order_number: str
    item_id: uuid.UUID
    refund_transaction_id: str = Field(..., min_length=1)


@router.put("/users/delivery-date")
async def update_delivery_date(request: DeliveryDateUpdate, _: AdminAccess, db: DB):
    order = await _get_user_order(db, request.order_number)
    order.delivery_date = request.delivery_date
    await db.flush()
    logger.info(f"Delivery date for {order.order_number} set to {request.delivery_date.isoformat()}")
    return ok("Delivery date updated successfully", await populate_order_details(db, order))


@router.put("/users/refund-transaction")
async def update_item_refund_transaction(request: RefundTransactionUpdate, _: AdminAccess, db: DB):
    order = await _get_user_order(db, request.order_number)
    line = next((line for line in order.items if line.item_id == request.item_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail=f"Item with ID {request.item_id} not found in order details")
    if not line.is_return:
        raise HTTPException(status_code=400, detail=f"No return initiated for item with ID {request.item_id}")

    line.return_info = {**(line.return_info or {}), "refund_transaction_id": request.refund_transaction_id}
    await db.flush()
    logger.info(f"Refund transaction recorded for item {request.item_id} in {order.order_number}")
    return ok("Refund transaction updated successfully", await populate_order_details(db, order))
