"""
Address book models.

Every entry carries its own id so an order can point at it as a shipping
address or as a return/exchange pickup location.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.partner import Partner


class AddressFieldsMixin:
    """Columns shared by user and partner address books."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    landmark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    address_type: Mapped[str] = mapped_column(
        String(20),
        default="Home",
        nullable=False,
        comment="Home, Work, Other"
    )
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "phone_number": self.phone_number,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "landmark": self.landmark,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "address_type": self.address_type,
            "is_default": self.is_default,
        }


class UserAddress(AddressFieldsMixin, Base):
    __tablename__ = "user_addresses"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user: Mapped["User"] = relationship("User", back_populates="addresses")

    def __repr__(self) -> str:
        return f"<UserAddress(user_id={self.user_id}, city='{self.city}')>"


class PartnerAddress(AddressFieldsMixin, Base):
    __tablename__ = "partner_addresses"

    partner_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    partner: Mapped["Partner"] = relationship("Partner", back_populates="addresses")

    def __repr__(self) -> str:
        return f"<PartnerAddress(partner_id={self.partner_id}, city='{self.city}')>"
