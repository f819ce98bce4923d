"""Try-before-you-buy image submissions."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.item import Item


class UserTBYB(Base):
    __tablename__ = "user_tbyb"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True
    )

    tbyb_image_urls: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    item: Mapped[Optional["Item"]] = relationship("Item")

    def __repr__(self) -> str:
        return f"<UserTBYB(user_id={self.user_id}, item_id={self.item_id})>"
