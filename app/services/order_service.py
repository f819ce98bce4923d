"""
User Order Service

A shopper's own orders: history, a single order, and the cancel / return /
exchange transitions. Checkout and payment capture live elsewhere; these
transitions only record the refund or exchange request for the admin team
to settle.
"""

import copy
import logging
import uuid
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db_types import utcnow
from app.models.address import UserAddress
from app.models.item import Item, ItemDetail
from app.models.order import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    UserOrder,
    UserOrderItem,
)
from app.models.user import User
from app.schemas.order import BankDetails, ExchangeLine
from app.services.order_enrichment import user_orders_query

logger = logging.getLogger(__name__)

# Deducted from every COD refund to cover the return pickup
COD_RETURN_FEE = 50

NON_CANCELLABLE_STATUSES = (
    OrderStatus.DISPATCHED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.RETURNED.value,
)


class OrderError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _in_progress(info: Optional[dict], status_key: str) -> bool:
    return bool(info and info.get(status_key) and info[status_key] != RefundStatus.COMPLETED.value)


def _find_color(detail: Optional[ItemDetail], color: Optional[str]) -> Optional[dict]:
    wanted = (color or "").lower()
    for group in (detail.images_by_color if detail else None) or []:
        if (group.get("color") or "").lower() == wanted:
            return group
    return None


class UserOrderService:
    """Order reads and transitions scoped to one shopper."""

    def __init__(self, db: AsyncSession, user: User):
        self.db = db
        self.user = user

    # ==================== Reads ====================

    async def history(self) -> List[UserOrder]:
        result = await self.db.execute(
            user_orders_query()
            .where(UserOrder.user_id == self.user.id)
            .order_by(UserOrder.created_at.desc())
        )
        return list(result.scalars().all())

    async def get(self, order_number: str, not_found: str = "Order not found") -> UserOrder:
        result = await self.db.execute(
            user_orders_query().where(
                UserOrder.order_number == order_number,
                UserOrder.user_id == self.user.id,
            )
        )
        order = result.scalar_one_or_none()
        if not order:
            raise OrderError(not_found, 404)
        return order

    # ==================== Helpers ====================

    async def _require_pickup_address(self, address_id: uuid.UUID) -> UserAddress:
        address = await self.db.scalar(
            select(UserAddress).where(
                UserAddress.id == address_id,
                UserAddress.user_id == self.user.id,
            )
        )
        if not address:
            raise OrderError(f"Pickup address not found: {address_id}", 404)
        return address

    @staticmethod
    def _lines(order: UserOrder, item_ids: List[uuid.UUID]) -> List[UserOrderItem]:
        lines = []
        for item_id in item_ids:
            line = next((line for line in order.items if line.item_id == item_id), None)
            if line is None:
                raise OrderError(f"Item not found in order details: {item_id}", 404)
            lines.append(line)
        return lines

    async def _details(self, item_ids) -> dict[uuid.UUID, ItemDetail]:
        result = await self.db.execute(select(ItemDetail).where(ItemDetail.item_id.in_(item_ids)))
        return {detail.item_id: detail for detail in result.scalars().all()}

    async def _restock(self, order: UserOrder) -> None:
        """Put every line's quantity back on its color/size entry."""
        details = await self._details({line.item_id for line in order.items if line.item_id})
        # Work on copies: in-place edits would match the loaded value and never flush
        groups_by_item = {item_id: copy.deepcopy(d.images_by_color or []) for item_id, d in details.items()}

        for line in order.items:
            groups = groups_by_item.get(line.item_id)
            group = next(
                (g for g in groups or [] if (g.get("color") or "").lower() == (line.color or "").lower()),
                None,
            )
            size = next(
                (
                    s for s in (group or {}).get("sizes") or []
                    if (s.get("size") or "").lower() == (line.size or "").lower()
                    and (line.sku_id is None or s.get("sku_id") == line.sku_id)
                ),
                None,
            )
            if size is None:
                logger.warning(
                    f"Order {order.order_number}: no stock entry for item {line.item_id} "
                    f"{line.color}/{line.size}, not restocked"
                )
                continue
            size["stock"] = (size.get("stock") or 0) + line.quantity

        for item_id, groups in groups_by_item.items():
            details[item_id].images_by_color = groups

    # ==================== Transitions ====================

    async def cancel(self, order_number: str, refund_reason: Optional[str] = None) -> UserOrder:
        order = await self.get(order_number)

        if order.order_status == OrderStatus.CANCELLED.value:
            raise OrderError("Order is already cancelled")
        if order.order_status in NON_CANCELLABLE_STATUSES:
            raise OrderError(f"Order cannot be cancelled in {order.order_status} status")

        refund: dict[str, Any] = {
            "refund_reason": refund_reason or "User cancellation",
            "request_date": utcnow().isoformat(),
        }
        if order.payment_method == PaymentMethod.ONLINE.value and order.is_paid:
            refund.update({
                "refund_amount": order.total_amount,
                "refund_status": RefundStatus.INITIATED.value,
            })

        order.order_status = OrderStatus.CANCELLED.value
        order.order_status_date = utcnow()
        order.refund_info = refund
        await self._restock(order)
        await self.db.flush()

        logger.info(f"Order {order.order_number} cancelled by user {self.user.id}")
        return order

    async def request_return(
        self,
        order_number: str,
        item_ids: List[uuid.UUID],
        return_reason: str,
        specific_return_reason: str,
        pickup_location_id: uuid.UUID,
        bank_details: Optional[BankDetails] = None,
    ) -> UserOrder:
        order = await self.get(order_number)

        if order.order_status == OrderStatus.CANCELLED.value:
            raise OrderError("Order status is Cancelled Cannot returned")
        if order.order_status == OrderStatus.RETURNED.value:
            raise OrderError("Order is already returned")
        if order.order_status == OrderStatus.EXCHANGED.value:
            raise OrderError("Order status is Exchanged Cannot returned")
        if order.order_status not in (OrderStatus.DELIVERED.value, OrderStatus.PARTIALLY_RETURNED.value):
            raise OrderError("Order must be in Delivered status to initiate a return")
        if order.payment_status != PaymentStatus.PAID.value:
            raise OrderError("Order must be in paid paymentStatus to initiate a return")

        is_cod = order.payment_method == PaymentMethod.COD.value
        if is_cod and bank_details is None:
            raise OrderError("bankDetails are required for COD payment refunds")

        lines = self._lines(order, item_ids)
        for line in lines:
            if line.is_return or _in_progress(line.return_info, "refund_status"):
                raise OrderError(f"A return request is already in progress for item: {line.item_id}")
            if line.is_exchange or _in_progress(line.exchange_info, "exchange_status"):
                raise OrderError(f"An exchange request is already in progress for item: {line.item_id}")

        await self._require_pickup_address(pickup_location_id)

        # Single-line orders refund the order total; otherwise the line's price
        single_line = len(order.items) == 1
        refunds = {}
        for line in lines:
            if single_line:
                amount = order.total_amount
            else:
                item = await self.db.get(Item, line.item_id)
                if not item:
                    raise OrderError(f"Item with ID {line.item_id} not found", 404)
                amount = (item.discounted_price or item.mrp) * line.quantity
            if is_cod:
                amount = max(0, amount - COD_RETURN_FEE)
            if amount <= 0:
                raise OrderError(f"Calculated refund amount is invalid for itemId {line.item_id}")
            refunds[line.id] = amount

        requested = utcnow().isoformat()
        for line in lines:
            line.is_return = True
            line.return_info = {
                "return_reason": return_reason,
                "specific_return_reason": specific_return_reason,
                "request_date": requested,
                "pickup_location_id": str(pickup_location_id),
                "bank_details": bank_details.model_dump() if bank_details else None,
                "refund_amount": refunds[line.id],
                "refund_status": RefundStatus.INITIATED.value,
                "refund_transaction_id": None,
            }

        if all(line.is_return for line in order.items):
            order.order_status = OrderStatus.RETURNED.value
        else:
            order.order_status = OrderStatus.PARTIALLY_RETURNED.value
        order.order_status_date = utcnow()
        await self.db.flush()

        logger.info(f"Return requested on {order.order_number} for {len(lines)} item(s)")
        return order

    async def request_exchange(
        self,
        order_number: str,
        exchanges: List[ExchangeLine],
        pickup_location_id: uuid.UUID,
    ) -> UserOrder:
        order = await self.get(order_number)

        if order.order_status == OrderStatus.EXCHANGED.value:
            raise OrderError("Order is already Exchanged")
        if order.order_status == OrderStatus.RETURNED.value:
            raise OrderError("Order is already returned")
        if order.order_status not in (OrderStatus.DELIVERED.value, OrderStatus.PARTIALLY_EXCHANGED.value):
            raise OrderError("Order must be in Delivered or Partially Exchanged status to initiate an exchange")
        if order.payment_status != PaymentStatus.PAID.value:
            raise OrderError("Order must be in Paid paymentStatus to initiate an exchange")

        await self._require_pickup_address(pickup_location_id)

        lines = self._lines(order, [exchange.item_id for exchange in exchanges])
        details = await self._details({line.item_id for line in lines})
        requested = utcnow().isoformat()

        for line, exchange in zip(lines, exchanges):
            if line.is_return:
                raise OrderError(f"A return request is already in progress for item: {line.item_id}")
            if line.is_exchange or _in_progress(line.exchange_info, "exchange_status"):
                raise OrderError(f"An exchange request is already in progress for item: {line.item_id}")

            detail = details.get(line.item_id)
            if detail is None:
                raise OrderError(f"Item details not found for item: {line.item_id}", 404)

            group = _find_color(detail, exchange.desired_color)
            if group is None:
                raise OrderError(f"Color {exchange.desired_color} is not available for item: {line.item_id}")

            sizes = group.get("sizes") or []
            size = next(
                (s for s in sizes if (s.get("size") or "").lower() == exchange.desired_size.lower()),
                None,
            )
            if size is None:
                available = ", ".join(s.get("size", "") for s in sizes)
                raise OrderError(
                    f"Size {exchange.desired_size} is not available for item: {line.item_id}. "
                    f"Available sizes for color {exchange.desired_color}: {available}"
                )
            if (size.get("stock") or 0) < line.quantity:
                raise OrderError(
                    f"Requested size {exchange.desired_size} has insufficient stock for quantity "
                    f"{line.quantity} for item: {line.item_id}"
                )

            line.is_exchange = True
            line.exchange_info = {
                "exchange_reason": exchange.exchange_reason.value,
                "exchange_specific_reason": exchange.exchange_specific_reason,
                "color": line.color,
                "size": line.size,
                "sku_id": line.sku_id,
                "desired_color": exchange.desired_color,
                "desired_size": exchange.desired_size,
                "request_date": requested,
                "pickup_location_id": str(pickup_location_id),
                "exchange_status": RefundStatus.INITIATED.value,
            }

        if all(line.is_exchange for line in order.items):
            order.order_status = OrderStatus.EXCHANGED.value
        else:
            order.order_status = OrderStatus.PARTIALLY_EXCHANGED.value
        order.order_status_date = utcnow()
        await self.db.flush()

        logger.info(f"Exchange requested on {order.order_number} for {len(lines)} item(s)")
        return order
