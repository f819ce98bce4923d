"""
Catalog models.

Item holds the listing fields; ItemDetail keeps the per-color image and size
groups as a JSON document:

    [{"color": "Red", "hex_code": "#ff0000",
      "images": [{"url": "...", "priority": 1, "is_tbyb": false}],
      "sizes": [{"size": "M", "stock": 4, "sku_id": "..."}]}]
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import JSONType, Money, UUIDType, utcnow


class Item(Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mrp: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    discounted_price: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sub_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    user_average_rating: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False,
        comment="Mean review rating, 2 decimals"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    detail: Mapped[Optional["ItemDetail"]] = relationship(
        "ItemDetail",
        back_populates="item",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def summary(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "mrp": self.mrp,
            "discounted_price": self.discounted_price,
            "image": self.image,
        }

    def __repr__(self) -> str:
        return f"<Item(name='{self.name}')>"


class ItemDetail(Base):
    __tablename__ = "item_details"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    images_by_color: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False
    )

    item: Mapped["Item"] = relationship("Item", back_populates="detail")

    def __repr__(self) -> str:
        return f"<ItemDetail(item_id={self.item_id}, colors={len(self.images_by_color or [])})>"
