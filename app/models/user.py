"""
User Model

Shoppers, administrators, sub-administrators and partner logins share one
profile table; the role column decides which session branch applies.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.address import UserAddress


class Role(str, Enum):
    """Closed set of session roles."""
    USER = "User"
    ADMIN = "Admin"
    SUB_ADMIN = "SubAdmin"
    PARTNER = "Partner"


class User(Base):
    """Account profile keyed by phone number."""
    __tablename__ = "users"

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

    role: Mapped[str] = mapped_column(
        String(20),
        default=Role.USER.value,
        nullable=False,
        comment="User, Admin, SubAdmin, Partner"
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_partner: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_phone_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_sub_admin_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_fake_user: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
        comment="Seeded account used for generated reviews"
    )

    permissions: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="SubAdmin permission codes"
    )

    firebase_uid: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        nullable=True,
        comment="Admin who created this SubAdmin"
    )

    # Timestamps
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

    # Relationships
    addresses: Mapped[List["UserAddress"]] = relationship(
        "UserAddress",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def __repr__(self) -> str:
        return f"<User(phone='{self.phone_number}', role='{self.role}')>"
