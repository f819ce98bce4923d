"""
Invoice API Endpoints

- Fee sheet: the named checkout charges (delivery fee, gst, platform fee...)
- Order invoices: invoice data and a printable document for one order
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload

from app.api.deps import DB, AdminAccess, AnyRole
from app.core.responses import created, ok
from app.models.invoice import Invoice, InvoiceEntry
from app.services.invoice_service import (
    InvoiceAccessError,
    InvoiceService,
    render_invoice_html,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/invoices", tags=["Invoices"])


# ==================== Schemas ====================

class InvoiceEntryIn(BaseModel):
    key: str = Field(..., min_length=1)
    value: float

    @field_validator("key")
    @classmethod
    def normalize_key(cls, v: str) -> str:
        key = v.strip().lower()
        if not key:
            raise ValueError("A valid 'key' string is required")
        return key


class InvoiceCreate(BaseModel):
    invoice: List[InvoiceEntryIn]

    @field_validator("invoice")
    @classmethod
    def validate_entries(cls, v: List[InvoiceEntryIn]) -> List[InvoiceEntryIn]:
        if not v:
            raise ValueError("Invoice must be a non-empty array")
        return v


class InvoiceEntryValue(BaseModel):
    value: float


def _invoice_dict(invoice: Invoice) -> dict:
    return {
        "id": str(invoice.id),
        "invoice": [
            {"id": str(entry.id), "key": entry.key, "value": entry.value}
            for entry in invoice.entries
        ],
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
    }


async def _get_invoice(db, invoice_id: UUID) -> Invoice:
    result = await db.execute(
        select(Invoice).options(selectinload(Invoice.entries)).where(Invoice.id == invoice_id)
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _find_entry(invoice: Invoice, entry_id: UUID) -> InvoiceEntry:
    entry = next((e for e in invoice.entries if e.id == entry_id), None)
    if entry is None:
        raise HTTPException(status_code=404, detail="Invoice or entry not found")
    return entry


# ==================== Fee sheet ====================

@router.post("/")
async def create_invoice(request: InvoiceCreate, _: AdminAccess, db: DB):
    """Create the fee sheet, or append entries when one already exists."""
    result = await db.execute(
        select(Invoice).options(selectinload(Invoice.entries)).order_by(Invoice.created_at).limit(1)
    )
    invoice = result.scalar_one_or_none()
    is_new = invoice is None
    if is_new:
        invoice = Invoice(entries=[])
        db.add(invoice)

    for entry in request.invoice:
        invoice.entries.append(InvoiceEntry(key=entry.key, value=entry.value))
    await db.flush()

    if is_new:
        return created("Invoice created successfully", _invoice_dict(invoice))
    return ok("Invoice entries added successfully", _invoice_dict(invoice))


@router.get("/")
async def list_invoices(db: DB):
    result = await db.execute(
        select(Invoice).options(selectinload(Invoice.entries)).order_by(Invoice.created_at)
    )
    invoices = result.scalars().all()
    if not invoices:
        raise HTTPException(status_code=404, detail="No invoices found")
    return ok("Invoices fetched successfully", [_invoice_dict(i) for i in invoices])


@router.post("/{invoice_id}/entries")
async def create_invoice_entry(invoice_id: UUID, request: InvoiceEntryIn, _: AdminAccess, db: DB):
    invoice = await _get_invoice(db, invoice_id)
    invoice.entries.append(InvoiceEntry(key=request.key, value=request.value))
    await db.flush()
    return ok("Invoice entry created successfully", _invoice_dict(invoice))


@router.put("/{invoice_id}/entries/{entry_id}")
async def update_invoice_entry(
    invoice_id: UUID,
    entry_id: UUID,
    request: InvoiceEntryValue,
    _: AdminAccess,
    db: DB,
):
    invoice = await _get_invoice(db, invoice_id)
    _find_entry(invoice, entry_id).value = request.value
    await db.flush()
    return ok("Invoice entry updated successfully", _invoice_dict(invoice))


@router.delete("/{invoice_id}/entries/{entry_id}")
async def delete_invoice_entry(invoice_id: UUID, entry_id: UUID, _: AdminAccess, db: DB):
    invoice = await _get_invoice(db, invoice_id)
    invoice.entries.remove(_find_entry(invoice, entry_id))
    await db.flush()
    return ok("Invoice entry deleted successfully", _invoice_dict(invoice))


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: UUID, _: AdminAccess, db: DB):
    await _get_invoice(db, invoice_id)
    await db.execute(delete(InvoiceEntry).where(InvoiceEntry.invoice_id == invoice_id))
    await db.execute(delete(Invoice).where(Invoice.id == invoice_id))
    return ok("Invoice deleted successfully")


# ==================== Order invoices ====================

async def _order_invoice_data(db, order_number: str, order_type: str, principal) -> dict:
    service = InvoiceService(db)
    try:
        order = await service.get_order(order_number, order_type)
        service.check_access(order, principal)
    except InvoiceAccessError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.invoice_data(order)


@router.get("/orders/{order_number}")
async def get_order_invoice(
    order_number: str,
    principal: AnyRole,
    db: DB,
    order_type: str = Query("user", description="user or partner"),
):
    data = await _order_invoice_data(db, order_number, order_type, principal)
    return ok("Invoice data fetched successfully", data)


@router.get("/orders/{order_number}/document", response_class=HTMLResponse)
async def print_order_invoice(
    order_number: str,
    principal: AnyRole,
    db: DB,
    order_type: str = Query("user", description="user or partner"),
):
    """
    Generate printable invoice in HTML format.

    The document is served as print-ready HTML rather than a PDF file; the
    browser's print dialog produces the PDF. The JSON form of the same data
    is available from GET /invoices/orders/{order_number}.
    """
    data = await _order_invoice_data(db, order_number, order_type, principal)
    logger.info(f"Rendering invoice for {order_type} order {order_number}")
    return HTMLResponse(content=render_invoice_html(data))
