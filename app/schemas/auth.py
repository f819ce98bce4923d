"""
Authentication Schemas

Request models for identity-token and OTP based signup/login.
"""

import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.base import BaseCreateSchema


def _ten_digit_phone(v: str) -> str:
    phone = re.sub(r"[\s\-]", "", v or "")
    if not re.match(r"^\d{10}$", phone):
        raise ValueError("Phone number must be a 10-digit number")
    return phone


class IdentitySignupRequest(BaseCreateSchema):
    """Signup with an identity-provider token."""
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=1, description="Phone number asserted by the token")
    email: Optional[EmailStr] = None
    id_token: str = Field(..., min_length=1)


class IdentityLoginRequest(BaseCreateSchema):
    phone_number: str = Field(..., min_length=1)
    id_token: str = Field(..., min_length=1)


class PhoneRequest(BaseCreateSchema):
    """Request carrying only a phone number (send / resend / OTP login)."""
    phone_number: str = Field(..., description="10 digit phone number")

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return _ten_digit_phone(v)


class VerifyOTPRequest(PhoneRequest):
    otp: str = Field(..., min_length=4, max_length=8)

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("OTP must contain only digits")
        return v


class OTPSignupRequest(PhoneRequest):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None


class RefreshTokenRequest(BaseModel):
    # Optional so a missing token gets the service's own message
    refresh_token: Optional[str] = None


class ProfileUpdateRequest(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
