"""
User Order API Endpoints

The signed-in shopper's order history and the cancel, return-refund and
return-exchange requests on their own orders.
"""

from fastapi import APIRouter, HTTPException

from app.api.deps import DB, CurrentUser
from app.core.responses import ok
from app.schemas.order import CancelOrderRequest, ExchangeRequest, ReturnRequest
from app.services.order_enrichment import populate_order_details
from app.services.order_service import OrderError, UserOrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("/")
async def get_order_history(user: CurrentUser, db: DB):
    orders = await UserOrderService(db, user).history()
    if not orders:
        return ok("No user orders found", [])
    return ok("User orders fetched successfully", await populate_order_details(db, orders))


@router.post("/cancel")
async def cancel_order(request: CancelOrderRequest, user: CurrentUser, db: DB):
    try:
        order = await UserOrderService(db, user).cancel(request.order_number, request.refund_reason)
    except OrderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Order cancelled successfully", await populate_order_details(db, order))


@router.post("/return-refund")
async def request_return_refund(request: ReturnRequest, user: CurrentUser, db: DB):
    """Mark lines for return; the refund itself is settled by an administrator."""
    try:
        order = await UserOrderService(db, user).request_return(
            request.order_number,
            request.item_ids,
            request.return_reason.value,
            request.specific_return_reason,
            request.pickup_location_id,
            request.bank_details,
        )
    except OrderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Return and refund request initiated", {"order": await populate_order_details(db, order)})


@router.post("/return-exchange")
async def request_return_exchange(request: ExchangeRequest, user: CurrentUser, db: DB):
    try:
        order = await UserOrderService(db, user).request_exchange(
            request.order_number, request.items, request.pickup_location_id
        )
    except OrderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Exchange request initiated successfully", await populate_order_details(db, order))


@router.get("/{order_number}")
async def get_order(order_number: str, user: CurrentUser, db: DB):
    try:
        order = await UserOrderService(db, user).get(order_number, not_found="Order not found for this user")
    except OrderError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ok("Order fetched successfully", await populate_order_details(db, order))
