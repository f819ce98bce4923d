"""
Partner (wholesale) order models.

A partner line item groups quantities per color and size:

    order_details = [{"color": "Red",
                      "size_and_quantity": [{"size": "M", "quantity": 10, "sku_id": "..."}]}]
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, Money, UUIDType, utcnow
from app.models.order import PaymentStatus


class PartnerOrderStatus(str, Enum):
    IN_TRANSIT = "In transit"
    CONFIRMED = "Confirmed"
    READY_FOR_DISPATCH = "Ready for Dispatch"
    DISPATCHED = "Dispatched"
    DELIVERED = "Delivered"
    PARTIALLY_RETURNED = "Partially Returned"
    ORDER_RETURNED = "Order Returned"


class PartnerOrder(Base):
    __tablename__ = "partner_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    order_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )

    partner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    order_status: Mapped[str] = mapped_column(
        String(30),
        default=PartnerOrderStatus.IN_TRANSIT.value,
        nullable=False,
        index=True
    )

    # Payment mode flags; exactly one is expected to be set
    is_online_payment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_cod_payment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_cheque_payment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_wallet_payment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True
    )

    total_amount: Mapped[float] = mapped_column(Money, default=0, nullable=False)
    invoice: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Order-level return request, same shape as a user line item's return_info
    return_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

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

    items: Mapped[List["PartnerOrderItem"]] = relationship(
        "PartnerOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PartnerOrderItem.position",
    )

    @property
    def payment_method(self) -> str:
        if self.is_cod_payment:
            return "COD"
        if self.is_cheque_payment:
            return "Cheque"
        if self.is_wallet_payment:
            return "Wallet"
        if self.is_online_payment:
            return "Online"
        return "N/A"

    def __repr__(self) -> str:
        return f"<PartnerOrder(order_number='{self.order_number}', status='{self.order_status}')>"


class PartnerOrderItem(Base):
    __tablename__ = "partner_order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("partner_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True
    )

    order_details: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_price: Mapped[float] = mapped_column(Money, default=0, nullable=False)

    order: Mapped["PartnerOrder"] = relationship("PartnerOrder", back_populates="items")

    @property
    def primary_color(self) -> Optional[str]:
        """Color of the first group; drives the representative image."""
        for group in self.order_details or []:
            if group.get("color"):
                return group["color"]
        return None

    def __repr__(self) -> str:
        return f"<PartnerOrderItem(item_id={self.item_id}, qty={self.total_quantity})>"
