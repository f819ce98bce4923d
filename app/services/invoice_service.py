"""
Order Invoice Service

Builds invoice data for a user or partner order and renders it as a
printable HTML document.
"""

import html
import logging
from typing import Any, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import TokenPrincipal
from app.models.item import Item
from app.models.order import UserOrder
from app.models.partner import Partner
from app.models.partner_order import PartnerOrder
from app.models.user import Role, User
from app.services.order_enrichment import partner_orders_query, user_orders_query

logger = logging.getLogger(__name__)

ORDER_TYPES = ("user", "partner")

Order = Union[UserOrder, PartnerOrder]


class InvoiceAccessError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _fmt_date(value, with_time: bool = False) -> str:
    if not value:
        return "N/A"
    return value.strftime("%d-%m-%Y %H:%M" if with_time else "%d-%m-%Y")


def _money(value: Optional[float]) -> str:
    return f"₹{float(value or 0):,.2f}"


class InvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_number: str, order_type: str) -> Order:
        if order_type not in ORDER_TYPES:
            raise InvoiceAccessError("Invalid order type. Use user or partner")

        if order_type == "partner":
            stmt = partner_orders_query().where(PartnerOrder.order_number == order_number)
        else:
            stmt = user_orders_query().where(UserOrder.order_number == order_number)

        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if not order:
            raise InvoiceAccessError("Order not found", 404)
        return order

    @staticmethod
    def check_access(order: Order, principal: TokenPrincipal) -> None:
        """Admins see every invoice; everyone else only their own orders."""
        if principal.role in (Role.ADMIN, Role.SUB_ADMIN):
            return
        owner_id = order.partner_id if isinstance(order, PartnerOrder) else order.user_id
        if owner_id is None or owner_id != principal.id:
            raise InvoiceAccessError("You are not allowed to view this invoice", 403)

    async def _line_items(self, order: Order) -> list[dict[str, Any]]:
        item_ids = {line.item_id for line in order.items if line.item_id}
        items = {}
        if item_ids:
            result = await self.db.execute(select(Item).where(Item.id.in_(item_ids)))
            items = {item.id: item for item in result.scalars().all()}

        lines = []
        for line in order.items:
            item = items.get(line.item_id)
            name = item.name if item else "Unknown Item"

            if isinstance(order, PartnerOrder):
                quantity = line.total_quantity or 0
                price = (line.total_price / quantity) if quantity else 0.0
                groups = line.order_details or []
                sizes = ", ".join(
                    sq.get("size", "") for g in groups for sq in g.get("size_and_quantity", [])
                )
                colors = ", ".join(g.get("color", "") for g in groups if g.get("color"))
            else:
                quantity = line.quantity or 0
                price = (item.discounted_price or item.mrp) if item else 0.0
                sizes = line.size or ""
                colors = line.color or ""

            lines.append({
                "item_id": str(line.item_id) if line.item_id else None,
                "name": name,
                "quantity": quantity,
                "size": sizes or "N/A",
                "color": colors or "N/A",
                "price": round(float(price), 2),
                "total": round(float(price) * quantity, 2),
            })
        return lines

    async def invoice_data(self, order: Order) -> dict[str, Any]:
        is_partner = isinstance(order, PartnerOrder)
        if is_partner:
            owner = await self.db.get(Partner, order.partner_id) if order.partner_id else None
        else:
            owner = await self.db.get(User, order.user_id) if order.user_id else None

        return {
            "order_id": order.order_number,
            "order_type": "partner" if is_partner else "user",
            "created_at": order.created_at,
            "customer_name": owner.name if owner else "N/A",
            "items": await self._line_items(order),
            "total_amount": order.total_amount,
            "payment_method": order.payment_method,
            "payment_status": order.payment_status,
            "order_status": order.order_status,
            "delivery_date": order.delivery_date,
            "invoice": order.invoice or [],
        }


def render_invoice_html(data: dict[str, Any]) -> str:
    """Printable invoice; tax and GST lines come from the order's charge breakdown."""
    subtotal = sum(line["price"] * line["quantity"] for line in data["items"])
    party_label = "Partner" if data["order_type"] == "partner" else "Customer"

    items_html = ""
    for idx, line in enumerate(data["items"], 1):
        items_html += f"""
        <tr>
            <td style="text-align: center;">{idx}</td>
            <td>{html.escape(line["name"])}</td>
            <td style="text-align: center;">{line["quantity"]}</td>
            <td style="text-align: center;">{html.escape(line["size"])}</td>
            <td style="text-align: center;">{html.escape(line["color"])}</td>
            <td style="text-align: right;">{_money(line["price"])}</td>
            <td style="text-align: right;">{_money(line["total"])}</td>
        </tr>
        """

    charges_html = ""
    for charge in data["invoice"]:
        key = str(charge.get("key", ""))
        if "tax" in key.lower() or "gst" in key.lower():
            charges_html += f"""
            <div class="row"><span class="label">{html.escape(key)}:</span><span class="value">{_money(charge.get("value"))}</span></div>
            """

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <title>Invoice - {html.escape(data["order_id"])}</title>
        <style>
            * {{ margin: 0; padding: 0; box-sizing: border-box; }}
            body {{ font-family: Arial, sans-serif; font-size: 12px; padding: 20px; background: #f5f5f5; }}
            .container {{ max-width: 800px; margin: 0 auto; background: white; padding: 20px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
            .header {{ display: flex; justify-content: space-between; border-bottom: 3px solid #1a5276; padding-bottom: 15px; margin-bottom: 20px; }}
            .header h1 {{ color: #1a5276; font-size: 24px; margin-bottom: 5px; }}
            .company {{ text-align: right; color: #666; }}
            .info-row {{ display: flex; margin-bottom: 5px; }}
            .info-label {{ width: 120px; color: #666; font-weight: 500; }}
            table {{ width: 100%; border-collapse: collapse; margin-top: 10px; }}
            th {{ background: #1a5276; color: white; padding: 10px; text-align: left; }}
            td {{ padding: 8px 10px; border-bottom: 1px solid #ddd; }}
            .totals {{ text-align: right; margin-top: 15px; padding: 15px; background: #f8f9fa; border-radius: 5px; }}
            .totals .row {{ display: flex; justify-content: flex-end; margin-bottom: 5px; }}
            .totals .label {{ width: 150px; color: #666; }}
            .totals .value {{ width: 120px; text-align: right; font-weight: 500; }}
            .totals .grand-total {{ font-size: 16px; font-weight: bold; color: #1a5276; border-top: 2px solid #1a5276; padding-top: 10px; margin-top: 10px; }}
            .footer {{ text-align: center; margin-top: 20px; padding-top: 15px; border-top: 1px solid #ddd; color: #666; font-size: 10px; }}
            @media print {{
                body {{ background: white; padding: 0; }}
                .container {{ box-shadow: none; }}
                .no-print {{ display: none; }}
            }}
            .print-btn {{ background: #1a5276; color: white; padding: 10px 30px; border: none; cursor: pointer; font-size: 14px; border-radius: 5px; margin-bottom: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <button class="print-btn no-print" onclick="window.print()">Print Invoice</button>

            <div class="header">
                <div>
                    <h1>INVOICE</h1>
                    <div class="info-row"><span class="info-label">Invoice #:</span><span>{html.escape(data["order_id"])}</span></div>
                    <div class="info-row"><span class="info-label">Date:</span><span>{_fmt_date(data["created_at"])}</span></div>
                    <div class="info-row"><span class="info-label">{party_label}:</span><span>{html.escape(data["customer_name"])}</span></div>
                </div>
                <div class="company">
                    <strong>NanoCart</strong><br>
                    info@nanocart.com
                </div>
            </div>

            <table>
                <thead>
                    <tr>
                        <th style="width: 40px;">#</th>
                        <th>Item</th>
                        <th>Qty</th>
                        <th>Size</th>
                        <th>Color</th>
                        <th>Price</th>
                        <th>Total</th>
                    </tr>
                </thead>
                <tbody>
                    {items_html}
                </tbody>
            </table>

            <div class="totals">
                <div class="row"><span class="label">Subtotal:</span><span class="value">{_money(subtotal)}</span></div>
                {charges_html}
                <div class="row grand-total"><span class="label">Total Amount:</span><span class="value">{_money(data["total_amount"])}</span></div>
            </div>

            <div style="margin-top: 20px;">
                <div class="info-row"><span class="info-label">Payment Method:</span><span>{data["payment_method"] or "N/A"}</span></div>
                <div class="info-row"><span class="info-label">Payment Status:</span><span>{data["payment_status"] or "N/A"}</span></div>
                <div class="info-row"><span class="info-label">Order Status:</span><span>{data["order_status"] or "N/A"}</span></div>
                <div class="info-row"><span class="info-label">Delivery Date:</span><span>{_fmt_date(data["delivery_date"])}</span></div>
            </div>

            <div class="footer">
                Thank you for your business!<br>
                For any queries, contact us at support@nanocart.com
            </div>
        </div>
    </body>
    </html>
    """
