"""
Phone OTP Model

One row per phone number. The SMS provider generates and checks the code,
so only a "sent" marker, the expiry and the verified flag are stored.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType, as_utc, utcnow


OTP_SENT_MARKER = "SENT_VIA_MSG91"


class PhoneOTP(Base):
    """
    OTP session for a phone number.
    Expires after a configured window; verification flips is_verified.
    """
    __tablename__ = "phone_otps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Phone number (indexed for lookups)
    phone_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True
    )

    otp: Mapped[str] = mapped_column(
        String(50),
        default=OTP_SENT_MARKER,
        nullable=False,
        comment="Status marker, never the code itself"
    )

    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    # Expiry
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    @property
    def is_expired(self) -> bool:
        """Check if OTP has expired."""
        return utcnow() > as_utc(self.expires_at)

    def __repr__(self) -> str:
        return f"<PhoneOTP(phone='{self.phone_number[-4:].rjust(10, '*')}', verified={self.is_verified})>"
