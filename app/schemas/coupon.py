"""
Coupon Schemas
"""

import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.coupon import DiscountType
from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


def _coupon_code(v: str) -> str:
    code = (v or "").strip().upper()
    if not re.match(r"^[A-Z0-9]{3,20}$", code):
        raise ValueError("Coupon code must be 3-20 alphanumeric characters")
    return code


class CouponCreate(BaseCreateSchema):
    coupon_code: str
    description: Optional[str] = Field(None, max_length=100)
    discount_type: DiscountType
    discount_value: float
    max_discount: Optional[float] = None
    minimum_purchase: float = 0
    expiration_date: datetime
    is_active: bool = True
    max_uses: Optional[int] = None
    uses_per_user: int = 1
    applicable_categories: List[str] = Field(default_factory=list)

    @field_validator("coupon_code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        return _coupon_code(v)


class CouponUpdate(BaseUpdateSchema):
    """Every field optional; rules are re-checked against the merged coupon."""
    coupon_code: Optional[str] = None
    description: Optional[str] = Field(None, max_length=100)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    max_discount: Optional[float] = None
    minimum_purchase: Optional[float] = None
    expiration_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    max_uses: Optional[int] = None
    uses_per_user: Optional[int] = None
    applicable_categories: Optional[List[str]] = None

    @field_validator("coupon_code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        return _coupon_code(v) if v is not None else v


class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(..., min_length=1)
    total_amount: float = Field(..., gt=0, description="Cart total before discount")
    categories: Optional[List[str]] = None


class CouponResponse(BaseResponseSchema):
    id: UUID
    coupon_code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    max_discount: Optional[float] = None
    minimum_purchase: float
    expiration_date: datetime
    is_active: bool
    max_uses: Optional[int] = None
    uses_per_user: int
    applicable_categories: List[str]
    created_at: datetime
    updated_at: datetime
