"""
Coupon Service

Coupon rules shared by create/update, and redemption for users and partners.
A redemption is recorded as a CouponUsage row keyed by the actor's id.
"""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db_types import as_utc, utcnow
from app.models.coupon import Coupon, CouponUsage, DiscountType
from app.models.user import Role

logger = logging.getLogger(__name__)


class CouponError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def check_coupon_rules(fields: dict[str, Any]) -> None:
    """Validate a complete set of coupon fields (after merging an update)."""
    discount_type = fields["discount_type"]
    value = fields["discount_value"]

    if discount_type == DiscountType.PERCENTAGE.value and not 0 < value <= 100:
        raise CouponError("Percentage discount must be between 0 and 100")
    if discount_type == DiscountType.FLAT.value and value <= 0:
        raise CouponError("Flat discount must be greater than 0")
    if discount_type == DiscountType.FREE_SHIPPING.value and value != 0:
        raise CouponError("Free shipping discount value must be 0")

    if fields.get("minimum_purchase", 0) < 0:
        raise CouponError("Minimum purchase cannot be negative")

    if as_utc(fields["expiration_date"]) <= utcnow():
        raise CouponError("Expiration date must be a valid date in the future")

    if fields.get("max_uses") is not None and fields["max_uses"] <= 0:
        raise CouponError("Max uses cannot be negative or zero unless unlimited (null)")
    if fields.get("uses_per_user", 1) < 1:
        raise CouponError("Uses per user must be a positive integer")
    if fields.get("max_discount") is not None and fields["max_discount"] <= 0:
        raise CouponError("Max discount cannot be negative or zero unless unlimited (null)")


def calculate_discount(coupon: Coupon, total_amount: float) -> float:
    """Discount for a cart total; free shipping is priced at checkout, so 0 here."""
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = total_amount * coupon.discount_value / 100
        if coupon.max_discount:
            discount = min(discount, coupon.max_discount)
        return round(discount, 2)

    elif coupon.discount_type == DiscountType.FLAT.value:
        return float(coupon.discount_value)

    return 0.0


class CouponService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str, active_only: bool = False) -> Optional[Coupon]:
        stmt = select(Coupon).where(Coupon.coupon_code == code.strip().upper())
        if active_only:
            stmt = stmt.where(Coupon.is_active == True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def apply(
        self,
        coupon_code: str,
        actor_id: uuid.UUID,
        role: Role,
        total_amount: float,
        categories: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """
        Redeem a coupon against a cart total.

        Checks run in a fixed order so the first failing rule names the
        problem: per-actor limit, expiry, global limit, minimum purchase,
        categories, then the computed discount against the total.
        """
        actor = "partner" if role is Role.PARTNER else "user"

        coupon = await self.get_by_code(coupon_code, active_only=True)
        if not coupon:
            raise CouponError("Coupon not found or inactive", 404)

        actor_uses = await self.db.scalar(
            select(func.count(CouponUsage.id)).where(
                CouponUsage.coupon_id == coupon.id,
                CouponUsage.actor_id == actor_id,
            )
        ) or 0
        if actor_uses >= coupon.uses_per_user:
            raise CouponError(f"Coupon already used by {actor}")

        if coupon.is_expired:
            raise CouponError("Coupon has expired")

        if coupon.max_uses is not None:
            total_uses = await self.db.scalar(
                select(func.count(CouponUsage.id)).where(CouponUsage.coupon_id == coupon.id)
            ) or 0
            if total_uses >= coupon.max_uses:
                raise CouponError("Coupon has reached its maximum usage limit")

        if total_amount < coupon.minimum_purchase:
            raise CouponError(f"Minimum purchase of ₹{coupon.minimum_purchase:.2f} required")

        if coupon.applicable_categories:
            if not categories:
                raise CouponError("Applicable categories are required for this coupon")
            if not set(coupon.applicable_categories) & set(categories):
                raise CouponError("Coupon not applicable to selected categories")

        discount = calculate_discount(coupon, total_amount)
        if discount > total_amount:
            raise CouponError("Discount value is greater than total amount")

        self.db.add(CouponUsage(
            coupon_id=coupon.id,
            actor_id=actor_id,
            role=role.value,
            discount_amount=discount,
        ))
        await self.db.flush()

        logger.info(f"Coupon {coupon.coupon_code} applied by {actor} {actor_id}: {discount}")
        return {
            "coupon_code": coupon.coupon_code,
            "discount_type": coupon.discount_type,
            "discount_value": coupon.discount_value,
            "calculated_discount": discount,
        }
