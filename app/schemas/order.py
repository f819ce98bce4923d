"""
User Order Schemas

Request bodies for the shopper's cancel / return / exchange actions.
"""

from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.schemas.base import BaseCreateSchema


class ReturnReason(str, Enum):
    """Reasons offered for both returns and exchanges."""
    SIZE_TOO_SMALL = "Size too small"
    SIZE_TOO_BIG = "Size too big"
    FIT = "Don't like the fit"
    QUALITY = "Don't like the quality"
    NOT_AS_CATALOGUED = "Not same as the catalogue"
    DAMAGED = "Product is damaged"
    WRONG_PRODUCT = "Wrong product is received"
    LATE = "Product arrived too late"


class CancelOrderRequest(BaseCreateSchema):
    order_number: str = Field(..., min_length=1)
    refund_reason: Optional[str] = Field(None, max_length=500)


class BankDetails(BaseCreateSchema):
    account_number: str = Field(..., min_length=1)
    ifsc_code: str = Field(..., min_length=1)
    bank_name: str = Field(..., min_length=1)
    account_holder_name: str = Field(..., min_length=1)


class ReturnRequest(BaseCreateSchema):
    order_number: str = Field(..., min_length=1)
    item_ids: List[UUID] = Field(..., min_length=1)
    return_reason: ReturnReason
    specific_return_reason: str = Field(..., min_length=1, max_length=500)
    pickup_location_id: UUID
    bank_details: Optional[BankDetails] = None


class ExchangeLine(BaseCreateSchema):
    item_id: UUID
    desired_color: str = Field(..., min_length=1)
    desired_size: str = Field(..., min_length=1)
    exchange_reason: ReturnReason
    exchange_specific_reason: str = Field(..., min_length=1, max_length=500)


class ExchangeRequest(BaseCreateSchema):
    order_number: str = Field(..., min_length=1)
    items: List[ExchangeLine] = Field(..., min_length=1)
    pickup_location_id: UUID

    @field_validator("items")
    @classmethod
    def distinct_items(cls, v: List[ExchangeLine]) -> List[ExchangeLine]:
        if len({line.item_id for line in v}) != len(v):
            raise ValueError("Each item can only be exchanged once per request")
        return v
