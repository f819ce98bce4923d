"""
User Review Model

Ratings and review text per item. Generated reviews carry is_fake so they can
be listed and purged independently of genuine ones.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Float, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.user import User


class UserReview(Base):
    __tablename__ = "user_reviews"
    __table_args__ = (
        Index('ix_user_reviews_item_user', 'item_id', 'user_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False
    )

    rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="1.0 - 5.0"
    )
    review_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    size_bought: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    is_fake: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<UserReview(item_id={self.item_id}, rating={self.rating})>"
