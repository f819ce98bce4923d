"""
User order models.

Line items are rows of their own; the optional return and exchange sub-records
stay JSON documents on the line item:

    return_info   = {"return_reason", "specific_return_reason", "request_date",
                     "pickup_location_id", "bank_details", "refund_amount",
                     "refund_status", "refund_transaction_id"}
    exchange_info = {"exchange_reason", "exchange_specific_reason", "color",
                     "size", "sku_id", "desired_color", "desired_size",
                     "request_date", "pickup_location_id", "exchange_status"}

A cancelled order keeps its refund request on the order itself:

    refund_info   = {"refund_reason", "request_date", "refund_amount",
                     "refund_status"}
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, Money, UUIDType, utcnow


class OrderStatus(str, Enum):
    INITIATED = "Initiated"
    CONFIRMED = "Confirmed"
    READY_FOR_DISPATCH = "Ready for Dispatch"
    DISPATCHED = "Dispatched"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    EXCHANGED = "Exchanged"
    PARTIALLY_RETURNED = "Partially Returned"
    PARTIALLY_EXCHANGED = "Partially Exchanged"


# An account can only be closed when every order sits in one of these
TERMINAL_ORDER_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.DELIVERED.value)


class PaymentMethod(str, Enum):
    ONLINE = "Online"
    COD = "COD"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class RefundStatus(str, Enum):
    INITIATED = "Initiated"
    PROCESSING = "Processing"
    COMPLETED = "Completed"


class UserOrder(Base):
    __tablename__ = "user_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    order_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human readable order id"
    )

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Id of an entry in the owner's address book
    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    payment_method: Mapped[str] = mapped_column(
        String(20),
        default=PaymentMethod.ONLINE.value,
        nullable=False
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True
    )
    order_status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.INITIATED.value,
        nullable=False,
        index=True
    )
    order_status_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    total_amount: Mapped[float] = mapped_column(Money, default=0, nullable=False)

    # Charge breakdown [{"key": "gst", "value": 18.0}, ...]
    invoice: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    refund_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    delivery_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    items: Mapped[List["UserOrderItem"]] = relationship(
        "UserOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="UserOrderItem.position",
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def __repr__(self) -> str:
        return f"<UserOrder(order_number='{self.order_number}', status='{self.order_status}')>"


class UserOrderItem(Base):
    __tablename__ = "user_order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("user_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True
    )

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sku_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_return: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_exchange: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    return_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    exchange_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    order: Mapped["UserOrder"] = relationship("UserOrder", back_populates="items")

    def __repr__(self) -> str:
        return f"<UserOrderItem(item_id={self.item_id}, qty={self.quantity})>"
