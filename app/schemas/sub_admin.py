"""
SubAdmin Schemas

Request bodies for the Admin's sub-administrator management.
"""

from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from app.schemas.auth import _ten_digit_phone
from app.schemas.base import BaseCreateSchema, BaseUpdateSchema

PERMISSIONS = ("read", "create", "update", "delete")


def _known_permissions(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    unknown = [p for p in v if p not in PERMISSIONS]
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    return list(dict.fromkeys(v))


class SubAdminCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., description="10 digit phone number")
    email: EmailStr
    permissions: List[str] = Field(default_factory=lambda: list(PERMISSIONS))

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return _ten_digit_phone(v)

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: List[str]) -> List[str]:
        return _known_permissions(v)


class SubAdminUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    permissions: Optional[List[str]] = None
    is_sub_admin_active: Optional[bool] = None

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _known_permissions(v)
