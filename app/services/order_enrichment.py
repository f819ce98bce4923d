"""
Order enrichment

Turns persisted user/partner orders into denormalized read views for admin
and customer clients: owner summary, shipping address, catalog fields and a
representative image per line item, and expanded return/exchange pickup
addresses.

Lookups for the whole batch are loaded up front into an EnrichmentContext.
Every optional expansion is then computed as a Resolved/Unresolved value and
merged by enrich_order(), so one bad reference never fails the order and one
bad order never fails the batch.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.address import PartnerAddress, UserAddress
from app.models.item import Item, ItemDetail
from app.models.order import UserOrder, UserOrderItem
from app.models.partner import Partner
from app.models.partner_order import PartnerOrder, PartnerOrderItem
from app.models.user import User

logger = logging.getLogger(__name__)

T = TypeVar("T")

OWNER_ERROR = "Invalid or missing owner"

AnyOrder = Union[UserOrder, PartnerOrder]


# ==================== Resolution results ====================

@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unresolved:
    reason: str


Resolution = Union[Resolved[T], Unresolved]


def parse_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


# ==================== Queries ====================

def user_orders_query():
    """Select for user orders with line items eagerly loaded."""
    return select(UserOrder).options(selectinload(UserOrder.items))


def partner_orders_query():
    """Select for partner orders with line items eagerly loaded."""
    return select(PartnerOrder).options(selectinload(PartnerOrder.items))


# ==================== Context ====================

@dataclass
class EnrichmentContext:
    """Lookup tables for one batch of orders."""
    user_owners: dict[uuid.UUID, dict] = field(default_factory=dict)
    partner_owners: dict[uuid.UUID, dict] = field(default_factory=dict)
    # (owner_id, address_id) -> address dict
    user_addresses: dict[tuple, dict] = field(default_factory=dict)
    partner_addresses: dict[tuple, dict] = field(default_factory=dict)
    items: dict[uuid.UUID, dict] = field(default_factory=dict)
    images_by_color: dict[uuid.UUID, list] = field(default_factory=dict)
    # Lookup tables that failed to load; resolutions against them are Unresolved
    failed: set[str] = field(default_factory=set)


def _pickup_refs(info: Optional[dict]) -> list:
    if info and info.get("pickup_location_id"):
        return [info["pickup_location_id"]]
    return []


def _address_refs(order: AnyOrder) -> set[uuid.UUID]:
    refs = [order.shipping_address_id]
    if isinstance(order, PartnerOrder):
        refs += _pickup_refs(order.return_info)
    else:
        for line in order.items:
            refs += _pickup_refs(line.return_info)
            refs += _pickup_refs(line.exchange_info)
    return {ref for ref in (parse_uuid(r) for r in refs) if ref}


async def _load(ctx: EnrichmentContext, table: str, db: AsyncSession, stmt):
    try:
        result = await db.execute(stmt)
        return result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Enrichment lookup '{table}' failed: {e}")
        ctx.failed.add(table)
        return []


async def load_context(db: AsyncSession, orders: Sequence[AnyOrder]) -> EnrichmentContext:
    ctx = EnrichmentContext()

    user_ids, partner_ids, item_ids = set(), set(), set()
    user_address_ids, partner_address_ids = set(), set()
    for order in orders:
        if isinstance(order, PartnerOrder):
            if order.partner_id:
                partner_ids.add(order.partner_id)
            partner_address_ids |= _address_refs(order)
        else:
            if order.user_id:
                user_ids.add(order.user_id)
            user_address_ids |= _address_refs(order)
        item_ids |= {line.item_id for line in order.items if line.item_id}

    if user_ids:
        for user in await _load(ctx, "users", db, select(User).where(User.id.in_(user_ids))):
            ctx.user_owners[user.id] = {
                "id": str(user.id),
                "name": user.name,
                "email": user.email,
                "phone_number": user.phone_number,
                "role": user.role,
            }
    if partner_ids:
        for partner in await _load(ctx, "partners", db, select(Partner).where(Partner.id.in_(partner_ids))):
            ctx.partner_owners[partner.id] = {
                "id": str(partner.id),
                "name": partner.name,
                "email": partner.email,
                "phone_number": partner.phone_number,
                "role": "Partner",
            }

    if user_address_ids and user_ids:
        stmt = select(UserAddress).where(
            UserAddress.id.in_(user_address_ids), UserAddress.user_id.in_(user_ids)
        )
        for address in await _load(ctx, "user_addresses", db, stmt):
            ctx.user_addresses[(address.user_id, address.id)] = address.to_dict()
    if partner_address_ids and partner_ids:
        stmt = select(PartnerAddress).where(
            PartnerAddress.id.in_(partner_address_ids), PartnerAddress.partner_id.in_(partner_ids)
        )
        for address in await _load(ctx, "partner_addresses", db, stmt):
            ctx.partner_addresses[(address.partner_id, address.id)] = address.to_dict()

    if item_ids:
        for item in await _load(ctx, "items", db, select(Item).where(Item.id.in_(item_ids))):
            ctx.items[item.id] = {
                "id": str(item.id),
                "name": item.name,
                "description": item.description,
                "mrp": item.mrp,
                "discounted_price": item.discounted_price,
            }
        stmt = select(ItemDetail).where(ItemDetail.item_id.in_(item_ids))
        for detail in await _load(ctx, "item_details", db, stmt):
            ctx.images_by_color[detail.item_id] = detail.images_by_color or []

    return ctx


# ==================== Resolvers ====================

def _priority(image: dict) -> float:
    priority = image.get("priority")
    return float("inf") if priority is None else priority


def pick_color_image(images_by_color: Iterable[dict], color: Optional[str]) -> Optional[str]:
    """
    URL of the lowest-priority image among the groups matching ``color``
    (case-insensitive). Ties keep array order; an image without a priority
    ranks after every ranked one.
    """
    if not color:
        return None
    wanted = color.lower()
    for group in images_by_color or []:
        if (group.get("color") or "").lower() != wanted:
            continue
        images = [img for img in group.get("images") or [] if img.get("url")]
        if images:
            return min(images, key=_priority)["url"]
    return None


def resolve_owner(order: AnyOrder, ctx: EnrichmentContext) -> Resolution[dict]:
    if isinstance(order, PartnerOrder):
        owner_id, owners, table = order.partner_id, ctx.partner_owners, "partners"
    else:
        owner_id, owners, table = order.user_id, ctx.user_owners, "users"

    if owner_id is None:
        return Unresolved("owner reference missing")
    if table in ctx.failed:
        return Unresolved("owner lookup failed")
    owner = owners.get(owner_id)
    if owner is None:
        return Unresolved(f"owner {owner_id} not found")
    return Resolved(owner)


def resolve_address(order: AnyOrder, ref: Any, ctx: EnrichmentContext) -> Resolution[dict]:
    """Match ``ref`` against the address book of the order's own owner."""
    if isinstance(order, PartnerOrder):
        owner_id, book, table = order.partner_id, ctx.partner_addresses, "partner_addresses"
    else:
        owner_id, book, table = order.user_id, ctx.user_addresses, "user_addresses"

    address_id = parse_uuid(ref)
    if address_id is None:
        return Unresolved(f"invalid address id {ref!r}")
    if table in ctx.failed:
        return Unresolved("address lookup failed")
    address = book.get((owner_id, address_id))
    if address is None:
        return Unresolved(f"address {address_id} not in owner's address book")
    return Resolved(address)


def resolve_item(item_id: Optional[uuid.UUID], color: Optional[str], ctx: EnrichmentContext) -> Resolution[dict]:
    if item_id is None:
        return Unresolved("item reference missing")
    if "items" in ctx.failed:
        return Unresolved("item lookup failed")
    item = ctx.items.get(item_id)
    if item is None:
        return Unresolved(f"item {item_id} not found")
    return Resolved({**item, "image": pick_color_image(ctx.images_by_color.get(item_id, []), color)})


def merge_pickup(order: AnyOrder, info: Optional[dict], ctx: EnrichmentContext, label: str) -> Optional[dict]:
    """Expand pickup_location_id in a return/exchange record, or leave it as is."""
    if not info:
        return info
    ref = info.get("pickup_location_id")
    if not ref:
        return dict(info)

    resolution = resolve_address(order, ref, ctx)
    if isinstance(resolution, Resolved):
        return {**info, "pickup_location_id": resolution.value}

    logger.warning(f"Order {order.order_number}: {label} pickup left unexpanded ({resolution.reason})")
    return dict(info)


def value_or_none(resolution: Resolution[T], order: AnyOrder, label: str) -> Optional[T]:
    if isinstance(resolution, Resolved):
        return resolution.value
    logger.warning(f"Order {order.order_number}: {label} unresolved ({resolution.reason})")
    return None


# ==================== Views ====================

def _user_line(line: UserOrderItem) -> dict:
    return {
        "id": str(line.id),
        "item_id": str(line.item_id) if line.item_id else None,
        "quantity": line.quantity,
        "size": line.size,
        "color": line.color,
        "sku_id": line.sku_id,
        "is_return": line.is_return,
        "is_exchange": line.is_exchange,
        "return_info": line.return_info,
        "exchange_info": line.exchange_info,
        "added_at": line.added_at,
    }


def _partner_line(line: PartnerOrderItem) -> dict:
    return {
        "id": str(line.id),
        "item_id": str(line.item_id) if line.item_id else None,
        "order_details": line.order_details,
        "total_quantity": line.total_quantity,
        "total_price": line.total_price,
    }


def base_view(order: AnyOrder) -> dict:
    """Plain structure of an order with references left as ids."""
    view = {
        "id": str(order.id),
        "order_number": order.order_number,
        "shipping_address_id": str(order.shipping_address_id) if order.shipping_address_id else None,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "total_amount": order.total_amount,
        "invoice": order.invoice or [],
        "delivery_date": order.delivery_date,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
    if isinstance(order, PartnerOrder):
        view.update({
            "order_type": "partner",
            "partner_id": str(order.partner_id) if order.partner_id else None,
            "is_online_payment": order.is_online_payment,
            "is_cod_payment": order.is_cod_payment,
            "is_cheque_payment": order.is_cheque_payment,
            "is_wallet_payment": order.is_wallet_payment,
            "return_info": order.return_info,
            "items": [_partner_line(line) for line in order.items],
        })
    else:
        view.update({
            "order_type": "user",
            "user_id": str(order.user_id) if order.user_id else None,
            "order_status_date": order.order_status_date,
            "refund_info": order.refund_info,
            "items": [_user_line(line) for line in order.items],
        })
    return view


def enrich_order(order: AnyOrder, ctx: EnrichmentContext) -> dict:
    view = base_view(order)

    owner = resolve_owner(order, ctx)
    if isinstance(owner, Unresolved):
        logger.warning(f"Order {order.order_number}: {owner.reason}")
        view["error"] = OWNER_ERROR
        return view

    is_partner = isinstance(order, PartnerOrder)
    view["partner" if is_partner else "user"] = owner.value

    if order.shipping_address_id:
        view["shipping_address"] = value_or_none(
            resolve_address(order, order.shipping_address_id, ctx), order, "shipping address"
        )
    else:
        view["shipping_address"] = None

    for line, line_view in zip(order.items, view["items"]):
        color = line.primary_color if is_partner else line.color
        line_view["item"] = value_or_none(resolve_item(line.item_id, color, ctx), order, "line item")
        if not is_partner:
            line_view["return_info"] = merge_pickup(order, line.return_info, ctx, "return")
            line_view["exchange_info"] = merge_pickup(order, line.exchange_info, ctx, "exchange")

    if is_partner:
        view["return_info"] = merge_pickup(order, order.return_info, ctx, "return")

    return view


async def populate_order_details(
    db: AsyncSession,
    orders: Union[AnyOrder, Sequence[AnyOrder], None],
    owner_id: Optional[uuid.UUID] = None,
):
    """
    Enrich one order or a list of orders.

    The output mirrors the input: a single order gives a dict, a list gives a
    list of the same length and order. ``owner_id`` is accepted for callers
    that pass it and is not used; owners are resolved per order. Orders must
    have their line items loaded (see user_orders_query / partner_orders_query).
    """
    if orders is None:
        return None

    single = isinstance(orders, (UserOrder, PartnerOrder))
    batch = [orders] if single else list(orders)
    if not batch:
        return []

    ctx = await load_context(db, batch)

    views = []
    for order in batch:
        try:
            views.append(enrich_order(order, ctx))
        except Exception as e:
            logger.error(f"Order {order.order_number}: enrichment failed: {e}")
            views.append({**base_view(order), "error": str(e)})

    return views[0] if single else views
