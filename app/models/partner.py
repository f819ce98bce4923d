"""
Partner Model

Wholesale buyers. A partner logs in through the shared user table and is
gated on the verification and activation flags kept here.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.address import PartnerAddress


class Partner(Base):
    __tablename__ = "partners"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shop_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    gst_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

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

    addresses: Mapped[List["PartnerAddress"]] = relationship(
        "PartnerAddress",
        back_populates="partner",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Partner(phone='{self.phone_number}', verified={self.is_verified}, active={self.is_active})>"
