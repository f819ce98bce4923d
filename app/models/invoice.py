"""
Invoice fee sheet.

A single sheet of named charges (delivery fee, gst, platform fee...) that the
storefront reads to price checkout.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import String, DateTime, ForeignKey, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, utcnow


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

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

    entries: Mapped[List["InvoiceEntry"]] = relationship(
        "InvoiceEntry",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceEntry.created_at",
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id})>"


class InvoiceEntry(Base):
    __tablename__ = "invoice_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    key: Mapped[str] = mapped_column(String(100), nullable=False, comment="Lowercased charge name")
    value: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="entries")

    def __repr__(self) -> str:
        return f"<InvoiceEntry(key='{self.key}', value={self.value})>"
