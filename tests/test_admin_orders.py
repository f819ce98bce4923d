import uuid
from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import select

from app.api.v1.endpoints.admin_orders import revenue_window
from app.db_types import utcnow
from app.models import PartnerOrder, PartnerOrderItem, Role, UserOrder, UserOrderItem
from tests.conftest import auth_header, make_item, make_partner, make_user


ORDERS = "/api/v1/admin/orders"


async def _user_order(db, user, number, **fields):
    order = UserOrder(order_number=number, user_id=user.id if user else None, items=[], **fields)
    db.add(order)
    await db.commit()
    return order


async def _partner_order(db, partner, number, **fields):
    order = PartnerOrder(order_number=number, partner_id=partner.id, items=[], **fields)
    db.add(order)
    await db.commit()
    return order


# ==================== Revenue window ====================

def test_revenue_window_last_day_covers_today():
    now = datetime(2024, 3, 15, 13, 30, tzinfo=timezone.utc)
    start, end = revenue_window("lastDay", now)

    assert start == datetime(2024, 3, 15, tzinfo=timezone.utc)
    assert end == datetime.combine(now.date(), time.max, tzinfo=timezone.utc)


def test_revenue_window_week_and_month():
    now = datetime(2024, 3, 31, 8, 0, tzinfo=timezone.utc)

    assert revenue_window("lastWeek", now)[0] == datetime(2024, 3, 24, tzinfo=timezone.utc)
    # February has no 31st
    assert revenue_window("lastMonth", now)[0] == datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert revenue_window("lastYear", now)[0] == datetime(2023, 3, 31, tzinfo=timezone.utc)


def test_revenue_window_rejects_unknown_filter():
    with pytest.raises(ValueError):
        revenue_window("lastDecade")


# ==================== Access ====================

async def test_admin_orders_reject_shoppers(client, shopper_headers):
    response = await client.get(f"{ORDERS}/users", headers=shopper_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Access denied for role User"


async def test_active_sub_admin_has_access(client, db):
    sub_admin = await make_user(db, role=Role.SUB_ADMIN, is_sub_admin_active=True)

    response = await client.get(f"{ORDERS}/users", headers=auth_header(Role.SUB_ADMIN, sub_admin))

    assert response.status_code == 200


async def test_deactivated_sub_admin_is_refused(client, db):
    sub_admin = await make_user(db, role=Role.SUB_ADMIN, is_sub_admin_active=False)

    response = await client.get(f"{ORDERS}/users", headers=auth_header(Role.SUB_ADMIN, sub_admin))

    assert response.status_code == 403
    assert response.json()["message"] == "SubAdmin account is deactivated"


# ==================== Browsing ====================

async def test_list_user_orders_paginates_newest_first(client, db, admin_headers):
    user = await make_user(db)
    base = utcnow()
    for n in range(3):
        await _user_order(db, user, f"ORD-{n}", created_at=base - timedelta(minutes=10 - n))

    response = await client.get(f"{ORDERS}/users", headers=admin_headers, params={"page": 1, "limit": 2})

    data = response.json()["data"]
    assert [o["order_number"] for o in data["orders"]] == ["ORD-2", "ORD-1"]
    assert data["total_orders"] == 3
    assert data["total_pages"] == 2
    assert data["current_page"] == 1
    assert data["orders"][0]["user"]["id"] == str(user.id)


async def test_orders_for_one_user(client, db, admin_headers):
    user = await make_user(db)
    other = await make_user(db)
    await _user_order(db, user, "ORD-MINE")
    await _user_order(db, other, "ORD-THEIRS")

    response = await client.get(f"{ORDERS}/users/{user.id}", headers=admin_headers)

    assert response.status_code == 200
    assert [o["order_number"] for o in response.json()["data"]["orders"]] == ["ORD-MINE"]


async def test_orders_for_user_without_orders(client, admin_headers):
    response = await client.get(f"{ORDERS}/users/{uuid.uuid4()}", headers=admin_headers)

    assert response.status_code == 404
    body = response.json()
    assert body["message"] == "No orders found for this user"
    assert body["data"]["orders"] == []


async def test_all_orders_marks_orphans(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-OK")
    await _user_order(db, None, "ORD-ORPHAN")

    response = await client.get(f"{ORDERS}/all", headers=admin_headers)

    orders = {o["order_number"]: o for o in response.json()["data"]["orders"]}
    assert response.json()["data"]["total_orders"] == 2
    assert "error" not in orders["ORD-OK"]
    assert orders["ORD-ORPHAN"]["error"] == "Invalid or missing owner"


async def test_filter_user_orders_by_status_is_case_insensitive(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-D", order_status="Dispatched")
    await _user_order(db, user, "ORD-C", order_status="Confirmed")

    response = await client.get(f"{ORDERS}/users/status/dispatched", headers=admin_headers)

    assert response.status_code == 200
    assert [o["order_number"] for o in response.json()["data"]["orders"]] == ["ORD-D"]


async def test_filter_user_orders_unknown_status(client, admin_headers):
    response = await client.get(f"{ORDERS}/users/status/lost", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid order status. Must be one of:")


async def test_filter_user_orders_by_payment_mode(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-COD", payment_method="COD")
    await _user_order(db, user, "ORD-ONLINE", payment_method="Online")

    response = await client.get(f"{ORDERS}/users/payment/COD", headers=admin_headers)

    assert [o["order_number"] for o in response.json()["data"]["orders"]] == ["ORD-COD"]


async def test_count_and_list_user_buckets(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-R", order_status="Returned", payment_status="Paid")
    await _user_order(db, user, "ORD-PR", order_status="Partially Returned", payment_status="Paid")
    await _user_order(db, user, "ORD-X", order_status="Cancelled", payment_status="Pending")

    total = await client.get(f"{ORDERS}/users/count/total", headers=admin_headers)
    returned = await client.get(f"{ORDERS}/users/count/returned", headers=admin_headers)
    pending = await client.get(f"{ORDERS}/users/count/pending", headers=admin_headers)
    listing = await client.get(f"{ORDERS}/users/list/returned", headers=admin_headers)

    assert total.json()["data"] == {"count": 3}
    assert returned.json()["data"] == {"count": 2}
    assert pending.json()["data"] == {"count": 1}
    assert sorted(o["order_number"] for o in listing.json()["data"]["orders"]) == ["ORD-PR", "ORD-R"]


async def test_unknown_count_metric(client, admin_headers):
    response = await client.get(f"{ORDERS}/users/count/refunded", headers=admin_headers)

    assert response.status_code == 400


async def test_partner_orders_filters(client, db, admin_headers):
    partner = await make_partner(db)
    await _partner_order(db, partner, "PORD-CHQ", is_cheque_payment=True, order_status="Order Returned")
    await _partner_order(db, partner, "PORD-WAL", is_wallet_payment=True, order_status="Dispatched")

    by_mode = await client.get(f"{ORDERS}/partners/payment/cheque", headers=admin_headers)
    by_status = await client.get(f"{ORDERS}/partners/status/dispatched", headers=admin_headers)
    returned = await client.get(f"{ORDERS}/partners/count/returned", headers=admin_headers)
    mine = await client.get(f"{ORDERS}/partners/{partner.id}", headers=admin_headers)

    assert [o["order_number"] for o in by_mode.json()["data"]["orders"]] == ["PORD-CHQ"]
    assert [o["order_number"] for o in by_status.json()["data"]["orders"]] == ["PORD-WAL"]
    assert returned.json()["data"] == {"count": 1}
    assert mine.json()["data"]["total_orders"] == 2
    assert mine.json()["data"]["orders"][0]["partner"]["id"] == str(partner.id)


async def test_partner_without_orders(client, admin_headers):
    response = await client.get(f"{ORDERS}/partners/{uuid.uuid4()}", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "No orders found for this partner"


# ==================== Revenue and items ====================

async def test_total_revenue_counts_paid_orders_only(client, db, admin_headers):
    user = await make_user(db)
    partner = await make_partner(db)
    await _user_order(db, user, "ORD-P1", payment_status="Paid", total_amount=1000)
    await _user_order(db, user, "ORD-P2", payment_status="Pending", total_amount=700)
    await _partner_order(db, partner, "PORD-P1", payment_status="Paid", total_amount=5000)

    response = await client.get(f"{ORDERS}/revenue/total", headers=admin_headers)

    assert response.json()["data"] == {
        "user_revenue": 1000.0,
        "partner_revenue": 5000.0,
        "total_revenue": 6000.0,
    }


async def test_filtered_revenue_respects_window(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-NOW", payment_status="Paid", total_amount=300)
    await _user_order(
        db, user, "ORD-OLD", payment_status="Paid", total_amount=900,
        created_at=utcnow() - timedelta(days=40),
    )

    week = await client.get(f"{ORDERS}/revenue", headers=admin_headers, params={"filter_type": "lastWeek"})
    year = await client.get(f"{ORDERS}/revenue", headers=admin_headers, params={"filter_type": "lastYear"})

    assert week.json()["data"]["user_revenue"] == 300.0
    assert week.json()["data"]["filter_type"] == "lastWeek"
    assert year.json()["data"]["total_revenue"] == 1200.0


async def test_filtered_revenue_unknown_filter(client, admin_headers):
    response = await client.get(f"{ORDERS}/revenue", headers=admin_headers, params={"filter_type": "lastHour"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid filter type. Use lastDay, lastWeek, lastMonth, or lastYear"


async def test_items_ranked_by_units_ordered(client, db, admin_headers):
    user = await make_user(db)
    partner = await make_partner(db)
    shirt = await make_item(db, "Shirt")
    jeans = await make_item(db, "Jeans")
    db.add_all([
        UserOrder(order_number="ORD-I1", user_id=user.id, items=[
            UserOrderItem(position=0, item_id=shirt.id, quantity=2),
            UserOrderItem(position=1, item_id=jeans.id, quantity=1),
        ]),
        PartnerOrder(order_number="PORD-I1", partner_id=partner.id, items=[
            PartnerOrderItem(position=0, item_id=jeans.id, total_quantity=10, total_price=5000),
        ]),
    ])
    await db.commit()

    response = await client.get(f"{ORDERS}/items/top", headers=admin_headers)

    data = response.json()["data"]
    assert data["total_items"] == 2
    first, second = data["items"]
    assert first["item"]["name"] == "Jeans"
    assert first["total_ordered"] == 11
    assert first["partner_ordered"] == 10
    assert second == {
        "item_id": str(shirt.id),
        "item": second["item"],
        "total_ordered": 2,
        "user_ordered": 2,
        "partner_ordered": 0,
    }


# ==================== Status maintenance ====================

async def test_update_order_status(client, db, admin_headers, session_factory):
    user = await make_user(db)
    await _user_order(db, user, "ORD-S")

    response = await client.put(
        f"{ORDERS}/users/status",
        headers=admin_headers,
        json={"order_number": "ORD-S", "order_status": "Dispatched"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["order_status"] == "Dispatched"
    async with session_factory() as session:
        order = await session.scalar(select(UserOrder).where(UserOrder.order_number == "ORD-S"))
    assert order.order_status_date is not None


async def test_update_status_of_missing_order(client, admin_headers):
    response = await client.put(
        f"{ORDERS}/users/status",
        headers=admin_headers,
        json={"order_number": "ORD-NONE", "order_status": "Delivered"},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


async def test_payment_status_only_for_cod(client, db, admin_headers):
    user = await make_user(db)
    await _user_order(db, user, "ORD-ON", payment_method="Online")
    await _user_order(db, user, "ORD-CASH", payment_method="COD")

    online = await client.put(
        f"{ORDERS}/users/payment-status",
        headers=admin_headers,
        json={"order_number": "ORD-ON", "payment_status": "Paid"},
    )
    cod = await client.put(
        f"{ORDERS}/users/payment-status",
        headers=admin_headers,
        json={"order_number": "ORD-CASH", "payment_status": "Paid"},
    )

    assert online.status_code == 400
    assert online.json()["message"] == "Payment status can only be updated for COD orders"
    assert cod.status_code == 200
    assert cod.json()["data"]["payment_status"] == "Paid"


async def test_refund_status_on_returned_line(client, db, admin_headers):
    user = await make_user(db)
    returned = await make_item(db, "Returned Shirt")
    kept = await make_item(db, "Kept Shirt")
    db.add(UserOrder(order_number="ORD-REF", user_id=user.id, items=[
        UserOrderItem(position=0, item_id=returned.id, is_return=True,
                      return_info={"return_reason": "Too small"}),
        UserOrderItem(position=1, item_id=kept.id),
    ]))
    await db.commit()

    def body(item_id):
        return {"order_number": "ORD-REF", "item_id": str(item_id), "refund_status": "Completed"}

    ok = await client.put(f"{ORDERS}/users/refund-status", headers=admin_headers, json=body(returned.id))
    not_returned = await client.put(f"{ORDERS}/users/refund-status", headers=admin_headers, json=body(kept.id))
    missing_id = uuid.uuid4()
    missing = await client.put(f"{ORDERS}/users/refund-status", headers=admin_headers, json=body(missing_id))

    assert ok.status_code == 200
    return_info = ok.json()["data"]["items"][0]["return_info"]
    assert return_info == {"return_reason": "Too small", "refund_status": "Completed"}
    assert not_returned.status_code == 400
    assert not_returned.json()["message"] == f"No return initiated for item with ID {kept.id}"
    assert missing.status_code == 404
    assert missing.json()["message"] == f"Item with ID {missing_id} not found in order details"


async def test_update_delivery_date(client, db, admin_headers, session_factory):
    user = await make_user(db)
    await _user_order(db, user, "ORD-DD")

    response = await client.put(
        f"{ORDERS}/users/delivery-date",
        headers=admin_headers,
        json={"order_number": "ORD-DD", "delivery_date": "2024-06-01T10:00:00+00:00"},
    )
    missing = await client.put(
        f"{ORDERS}/users/delivery-date",
        headers=admin_headers,
        json={"order_number": "ORD-NONE", "delivery_date": "2024-06-01T10:00:00+00:00"},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Delivery date updated successfully"
    async with session_factory() as session:
        order = await session.scalar(select(UserOrder).where(UserOrder.order_number == "ORD-DD"))
    assert order.delivery_date.date().isoformat() == "2024-06-01"
    assert missing.status_code == 404


async def test_refund_transaction_on_returned_line(client, db, admin_headers, session_factory):
    user = await make_user(db)
    returned = await make_item(db, "Returned Shirt")
    kept = await make_item(db, "Kept Shirt")
    db.add(UserOrder(order_number="ORD-TXN", user_id=user.id, items=[
        UserOrderItem(position=0, item_id=returned.id, is_return=True,
                      return_info={"refund_status": "Completed"}),
        UserOrderItem(position=1, item_id=kept.id),
    ]))
    await db.commit()

    def body(item_id):
        return {"order_number": "ORD-TXN", "item_id": str(item_id), "refund_transaction_id": "TXN-001"}

    done = await client.put(f"{ORDERS}/users/refund-transaction", headers=admin_headers, json=body(returned.id))
    not_returned = await client.put(f"{ORDERS}/users/refund-transaction", headers=admin_headers, json=body(kept.id))

    assert done.status_code == 200
    assert done.json()["message"] == "Refund transaction updated successfully"
    assert done.json()["data"]["items"][0]["return_info"] == {
        "refund_status": "Completed",
        "refund_transaction_id": "TXN-001",
    }
    assert not_returned.status_code == 400
    async with session_factory() as session:
        line = await session.scalar(select(UserOrderItem).where(UserOrderItem.item_id == returned.id))
    assert line.return_info["refund_transaction_id"] == "TXN-001"
