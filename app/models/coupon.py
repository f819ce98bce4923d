"""
Coupon Model

Supports percentage, flat and free-shipping discounts with usage limits,
a minimum purchase and optional category restrictions.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, Money, UUIDType, as_utc, utcnow


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "Percentage"  # e.g., 10% off
    FLAT = "Flat"  # e.g., ₹100 off
    FREE_SHIPPING = "FreeShipping"  # Free shipping, value must be 0


class Coupon(Base):
    """
    Promo code. Codes are stored uppercase and looked up uppercase.
    """
    __tablename__ = "coupons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    coupon_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True
    )
    description: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    discount_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Percentage, Flat, FreeShipping"
    )
    discount_value: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    max_discount: Mapped[Optional[float]] = mapped_column(
        Money,
        nullable=True,
        comment="Cap on discount for Percentage type"
    )
    minimum_purchase: Mapped[float] = mapped_column(Money, nullable=False, default=0)

    expiration_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Usage limits
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    uses_per_user: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    applicable_categories: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    usages: Mapped[List["CouponUsage"]] = relationship(
        "CouponUsage",
        back_populates="coupon",
        cascade="all, delete-orphan",
    )

    @property
    def is_expired(self) -> bool:
        return utcnow() > as_utc(self.expiration_date)

    def __repr__(self) -> str:
        return f"<Coupon(code='{self.coupon_code}', type='{self.discount_type}')>"


class CouponUsage(Base):
    """
    One redemption of a coupon by a user or partner.
    """
    __tablename__ = "coupon_usages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("coupons.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # User id or partner id depending on role
    actor_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    discount_amount: Mapped[float] = mapped_column(Money, nullable=False, default=0)

    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    coupon: Mapped["Coupon"] = relationship("Coupon", back_populates="usages")

    def __repr__(self) -> str:
        return f"<CouponUsage(coupon_id={self.coupon_id}, actor_id={self.actor_id})>"
